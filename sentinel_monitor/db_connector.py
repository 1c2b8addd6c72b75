"""
Database connector for security audit events.

Persists every security state transition recorded by the audit sink:
- security_events: event type, status, subject ip/user and JSONB details
"""

import os
import logging
import ipaddress
from typing import Optional, Dict, Any, List
from datetime import datetime
import psycopg2
from psycopg2 import pool
from psycopg2.extras import RealDictCursor, Json

logger = logging.getLogger(__name__)


class DatabaseConnector:
    """
    Manages PostgreSQL database connections for the audit trail.
    
    Schema:
        - security_events: one row per audit event
    """
    
    def __init__(
        self,
        host: str,
        port: int,
        database: str,
        user: str,
        password: str,
        ssl_mode: str = "require",
        min_connections: int = 1,
        max_connections: int = 10
    ):
        """
        Initialize database connector with connection pooling.
        
        Args:
            host: Database host address
            port: Database port number
            database: Database name
            user: Database username
            password: Database password
            ssl_mode: SSL mode (require, prefer, disable)
            min_connections: Minimum connections in pool
            max_connections: Maximum connections in pool
        """
        self.host = host
        self.port = port
        self.database = database
        self.user = user
        self.ssl_mode = ssl_mode
        self.connection_pool: Optional[pool.SimpleConnectionPool] = None
        
        try:
            logger.info(f"Initializing database connection pool to {host}:{port}/{database}")
            self.connection_pool = psycopg2.pool.SimpleConnectionPool(
                min_connections,
                max_connections,
                host=host,
                port=port,
                database=database,
                user=user,
                password=password,
                sslmode=ssl_mode
            )
            
            if self.connection_pool:
                logger.info("Database connection pool created successfully")
                self._initialize_schema()
            else:
                raise RuntimeError("Failed to create connection pool")
                
        except psycopg2.Error as e:
            logger.error(f"Database connection error: {e}")
            raise
    
    def _initialize_schema(self) -> None:
        """Create the security_events table and its indexes if they don't exist."""
        schema_queries = """
        CREATE TABLE IF NOT EXISTS security_events (
            id SERIAL PRIMARY KEY,
            event_type VARCHAR(64) NOT NULL,
            status VARCHAR(16) NOT NULL
                CHECK (status IN ('INFO', 'WARNING', 'ALERT', 'BLOCKED', 'UNBLOCKED')),
            ip_address INET,
            user_id VARCHAR(128),
            details JSONB,
            created_at TIMESTAMPTZ DEFAULT NOW()
        );
        
        CREATE INDEX IF NOT EXISTS idx_security_events_type ON security_events(event_type);
        CREATE INDEX IF NOT EXISTS idx_security_events_status ON security_events(status);
        CREATE INDEX IF NOT EXISTS idx_security_events_created_at ON security_events(created_at);
        CREATE INDEX IF NOT EXISTS idx_security_events_ip ON security_events(ip_address);
        """
        
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            
            cursor.execute(schema_queries)
            logger.info("Database schema verified/created successfully")
            
            conn.commit()
            cursor.close()
            
        except psycopg2.Error as e:
            logger.error(f"Error initializing database schema: {e}")
            if conn:
                conn.rollback()
            raise
        finally:
            if conn:
                self.release_connection(conn)
    
    def get_connection(self):
        """Get a connection from the pool."""
        if not self.connection_pool:
            raise RuntimeError("Connection pool is not initialized")
        return self.connection_pool.getconn()
    
    def release_connection(self, conn) -> None:
        """Release a connection back to the pool."""
        if self.connection_pool and conn:
            self.connection_pool.putconn(conn)
    
    def insert_security_event(
        self,
        event_type: str,
        status: str,
        details: Dict[str, Any],
        ip_address: Optional[str] = None,
        user_id: Optional[str] = None,
        created_at: Optional[datetime] = None
    ) -> Optional[int]:
        """
        Insert a security event.
        
        Args:
            event_type: Event name (e.g., 'CSRF_ATTEMPT', 'USER_BLOCKED')
            status: One of INFO, WARNING, ALERT, BLOCKED, UNBLOCKED
            details: Arbitrary JSON-serializable event data
            ip_address: Subject IP; stored as NULL when not a valid address
            user_id: Subject user id
            created_at: Event time (defaults to database NOW())
            
        Returns:
            Event ID if successful, None otherwise
        """
        if ip_address is not None:
            try:
                ipaddress.ip_address(ip_address)
            except ValueError:
                logger.debug(f"Storing event without INET value for non-IP address: {ip_address}")
                ip_address = None
        
        query = """
        INSERT INTO security_events (event_type, status, ip_address, user_id, details, created_at)
        VALUES (%s, %s, %s, %s, %s, COALESCE(%s, NOW()))
        RETURNING id;
        """
        
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            
            cursor.execute(
                query,
                (event_type, status, ip_address, user_id, Json(details), created_at)
            )
            event_id = cursor.fetchone()[0]
            
            conn.commit()
            cursor.close()
            
            logger.debug(f"Security event inserted with ID: {event_id}")
            return event_id
            
        except psycopg2.Error as e:
            logger.error(f"Error inserting security event: {e}")
            if conn:
                conn.rollback()
            return None
        finally:
            if conn:
                self.release_connection(conn)
    
    def get_security_events(
        self,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        limit: int = 10000
    ) -> List[Dict[str, Any]]:
        """
        Retrieve security events in a period, newest first.
        
        Args:
            start: Inclusive lower bound on created_at
            end: Inclusive upper bound on created_at
            limit: Maximum number of events to retrieve
            
        Returns:
            List of event dictionaries
        """
        query = "SELECT * FROM security_events WHERE 1=1"
        params: List[Any] = []
        
        if start:
            query += " AND created_at >= %s"
            params.append(start)
        
        if end:
            query += " AND created_at <= %s"
            params.append(end)
        
        query += " ORDER BY created_at DESC LIMIT %s"
        params.append(limit)
        
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor(cursor_factory=RealDictCursor)
            
            cursor.execute(query, params)
            events = cursor.fetchall()
            cursor.close()
            
            return [dict(event) for event in events]
            
        except psycopg2.Error as e:
            logger.error(f"Error retrieving security events: {e}")
            return []
        finally:
            if conn:
                self.release_connection(conn)
    
    def get_status_distribution(self) -> Dict[str, int]:
        """
        Get distribution of events by status.
        
        Returns:
            Dictionary mapping status to count
        """
        query = """
        SELECT status, COUNT(*) as count
        FROM security_events
        GROUP BY status
        """
        
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            
            cursor.execute(query)
            results = cursor.fetchall()
            cursor.close()
            
            return {row[0]: row[1] for row in results}
            
        except psycopg2.Error as e:
            logger.error(f"Error getting status distribution: {e}")
            return {}
        finally:
            if conn:
                self.release_connection(conn)
    
    def close(self) -> None:
        """Close all connections in the pool."""
        if self.connection_pool:
            self.connection_pool.closeall()
            logger.info("Database connection pool closed")
    
    def test_connection(self) -> bool:
        """
        Test database connectivity.
        
        Returns:
            True if connection successful, False otherwise
        """
        conn = None
        try:
            conn = self.get_connection()
            cursor = conn.cursor()
            cursor.execute("SELECT 1")
            cursor.close()
            logger.info("Database connection test successful")
            return True
        except Exception as e:
            logger.error(f"Database connection test failed: {e}")
            return False
        finally:
            if conn:
                self.release_connection(conn)


def create_db_connector_from_env() -> Optional[DatabaseConnector]:
    """
    Create a DatabaseConnector instance from environment variables.
    
    Returns:
        DatabaseConnector instance if configured, None otherwise
    """
    from dotenv import load_dotenv
    load_dotenv()
    
    required_vars = ["DB_HOST", "DB_USER", "DB_PASSWORD", "DB_NAME"]
    missing_vars = [var for var in required_vars if not os.getenv(var)]
    
    if missing_vars:
        logger.warning(
            f"Database configuration incomplete. Missing: {', '.join(missing_vars)}. "
            "Audit events will not be persisted to the database."
        )
        return None
    
    try:
        connector = DatabaseConnector(
            host=os.getenv("DB_HOST"),
            port=int(os.getenv("DB_PORT", "5432")),
            database=os.getenv("DB_NAME"),
            user=os.getenv("DB_USER"),
            password=os.getenv("DB_PASSWORD"),
            ssl_mode=os.getenv("DB_SSL_MODE", "require")
        )
        return connector
    except Exception as e:
        logger.error(f"Failed to create database connector: {e}")
        return None
