"""
Module: bot/database.py

Handles SQLite database connectivity, schema initialization, transactions, and query
execution for persisted timers, the due-timer index, and retry counters.
"""
import sqlite3
from contextlib import contextmanager
from utils import log_message

class Database:
    """
    Database wrapper for SQLite with automatic connection handling and schema setup.

    The connection runs in autocommit mode; multi-statement mutations go through
    `transaction()`, which holds a write lock for the whole block so that other
    connections to the same file never observe a partial update.
    """
    def __init__(self, path='timers.db'):
        """
        Initialize the Database instance and establish the first connection.

        Args:
            path (str): SQLite database file path.
        """
        self.path = path
        self.conn = None
        self.cursor = None
        self.connect()

    def connect(self):
        """
        Establish a connection to the SQLite database and initialize the schema
        if necessary.

        Reconnects if there was a previous connection.
        """
        try:
            if self.conn:
                try:
                    self.conn.close()
                except Exception as e:
                    log_message(f"Error closing existing DB connection: {e}", "warning")

            self.conn = sqlite3.connect(
                self.path,
                isolation_level=None,
                check_same_thread=False
            )
            self.cursor = self.conn.cursor()
            self._initialize_db()

        except Exception as e:
            log_message(f"Database connection error: {e}", "error")

    def _initialize_db(self):
        """
        Create the 'timers', 'timer_index' and 'retry_counters' tables and
        necessary indexes if they do not exist.
        """
        try:
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS timers (
                    subject TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    target_us INTEGER NOT NULL,
                    set_at_us INTEGER NOT NULL,
                    PRIMARY KEY (subject, kind)
                )
            ''')
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS timer_index (
                    seq INTEGER PRIMARY KEY AUTOINCREMENT,
                    target_us INTEGER NOT NULL,
                    subject TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    UNIQUE (subject, kind)
                )
            ''')
            self.cursor.execute('CREATE INDEX IF NOT EXISTS idx_timer_index_due ON timer_index (target_us, seq)')
            self.cursor.execute('''
                CREATE TABLE IF NOT EXISTS retry_counters (
                    subject TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    attempts INTEGER NOT NULL,
                    expires_us INTEGER NOT NULL,
                    PRIMARY KEY (subject, kind)
                )
            ''')
        except Exception as e:
            log_message(f"Error initializing database schema: {e}", "error")

    def ensure_connection(self):
        """
        Verify that the current connection is alive by executing a simple query.
        If it fails, reconnect and reinitialize the schema.
        """
        try:
            self.cursor.execute('SELECT 1')
        except (sqlite3.ProgrammingError, sqlite3.InterfaceError, sqlite3.OperationalError, AttributeError) as e:
            log_message(f"Lost DB connection, reconnecting: {e}", "warning")
            self.connect()

    @contextmanager
    def transaction(self):
        """
        Run a block of statements atomically.

        Yields a cursor inside `BEGIN IMMEDIATE`; commits when the block exits
        normally and rolls back (then re-raises) on any exception.
        """
        self.ensure_connection()
        cursor = self.conn.cursor()
        cursor.execute('BEGIN IMMEDIATE')
        try:
            yield cursor
        except Exception:
            cursor.execute('ROLLBACK')
            raise
        else:
            cursor.execute('COMMIT')

    def execute(self, query, params=()):
        """
        Execute a modifying SQL query (INSERT/UPDATE/DELETE) with parameters,
        ensuring the connection is alive.

        Returns the SQLite cursor for further inspection.
        """
        try:
            self.ensure_connection()
            return self.cursor.execute(query, params)
        except Exception as e:
            log_message(f"Error executing query: {e}\nQuery: {query}\nParams: {params}", "error")
            raise

    def fetchall(self, query, params=()):
        """
        Execute a SELECT query with parameters and return all fetched rows.

        Ensures the connection is alive before querying.
        """
        try:
            self.ensure_connection()
            return self.cursor.execute(query, params).fetchall()
        except Exception as e:
            log_message(f"Error fetching data: {e}\nQuery: {query}\nParams: {params}", "error")
            raise

    def close(self):
        """
        Close the connection. Every transaction is already committed, so this
        is the final flush before exit.
        """
        if self.conn:
            try:
                self.conn.close()
            except Exception as e:
                log_message(f"Failed to close database: {e}", "error")
            self.conn = None
            self.cursor = None
