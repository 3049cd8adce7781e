"""
ImageDb - MySQL metadata store for image records.
"""

import logging
from typing import List, Optional

import mysql.connector
from mysql.connector import errorcode, pooling
from retrying import retry

from .image_record import ImageRecord
from .settings import Settings

COLUMNS = (
    'id', 'original_blob_key', 'original_file_name', 'content_type', 'file_extension',
    'width', 'height', 'size_bytes', 'uploaded_at', 'updated_at',
    'is_compressed', 'compression_type',
)

TABLES = {
    'images': (
        "CREATE TABLE IF NOT EXISTS `images` ("
        "  id CHAR(36) NOT NULL PRIMARY KEY,"
        "  original_blob_key VARCHAR(500) NOT NULL,"
        "  original_file_name VARCHAR(2000),"
        "  content_type VARCHAR(100),"
        "  file_extension VARCHAR(10),"
        "  width INT NOT NULL,"
        "  height INT NOT NULL,"
        "  size_bytes BIGINT NOT NULL,"
        "  uploaded_at DATETIME NOT NULL,"
        "  updated_at DATETIME NULL,"
        "  is_compressed BOOLEAN NOT NULL DEFAULT FALSE,"
        "  compression_type VARCHAR(20) NULL"
        ") ENGINE=InnoDB"
    )
}

_SELECT = f"SELECT {', '.join(COLUMNS)} FROM images"


def _is_mysql_error(e: Exception) -> bool:
    return isinstance(e, mysql.connector.Error)


class ImageDb:
    """
    Image record repository backed by a pooled MySQL connection.

    Every statement runs on its own pooled connection and is committed
    immediately, so per-row atomicity comes from MySQL.
    """

    def __init__(self, settings: Settings, logger: Optional[logging.Logger] = None):
        self.settings = settings
        self.pool_size = settings.sql_pool_size
        self.connection_pool = None
        self.logger = logger or logging.getLogger(__name__)

    def initialize_pool(self):
        """
        Initialize the connection pool lazily if it hasn't been created yet.
        """
        if not self.connection_pool:
            self.logger.debug("Initializing connection pool...")
            try:
                self.connection_pool = pooling.MySQLConnectionPool(
                    pool_name="image_db_pool",
                    pool_size=self.pool_size,
                    user=self.settings.sql_user,
                    password=self.settings.sql_password,
                    host=self.settings.sql_host,
                    port=self.settings.sql_port,
                    database=self.settings.sql_database,
                )
                self.logger.debug("Connection pool initialized.")
            except mysql.connector.Error as err:
                self.logger.error(f"Failed to initialize connection pool: {err}")
                raise

    @retry(retry_on_exception=_is_mysql_error, stop_max_attempt_number=3, wait_exponential_multiplier=1000)
    def get_cursor(self):
        """
        Get a connection from the pool and create a cursor.
        """
        try:
            self.initialize_pool()
            connection = self.connection_pool.get_connection()
            return connection.cursor(buffered=True), connection
        except mysql.connector.Error as e:
            self.logger.warning(f"Error getting cursor: {e}")
            raise

    def close_connection(self, connection):
        """
        Return a connection to the pool.
        """
        if connection:
            try:
                connection.close()
            except mysql.connector.Error as e:
                self.logger.warning(f"Error closing connection: {e}")

    def connect(self) -> bool:
        """Return True once a connection can be obtained."""
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            return True
        except mysql.connector.Error as e:
            self.logger.warning(f"Database not reachable: {e}")
            return False
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def create_tables(self):
        """
        Create the required database tables if they do not exist.
        """
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            for table_name, table_description in TABLES.items():
                try:
                    self.logger.info(f"Creating table {table_name}...")
                    cursor.execute(table_description)
                except mysql.connector.Error as err:
                    if err.errno == errorcode.ER_TABLE_EXISTS_ERROR:
                        self.logger.info(f"Table {table_name} already exists.")
                    else:
                        self.logger.error(f"Error creating table {table_name}: {err}")
                        raise
            connection.commit()
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def _execute(self, sql: str, params: tuple = ()):
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            self.logger.debug(f"SQL: {sql} {params}")
            cursor.execute(sql, params)
            connection.commit()
            return cursor.rowcount
        except mysql.connector.Error as e:
            self.logger.error(f"Error executing statement: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    def _fetch(self, sql: str, params: tuple = ()) -> List[ImageRecord]:
        cursor, connection = None, None
        try:
            cursor, connection = self.get_cursor()
            cursor.execute(sql, params)
            return [self.from_row(row) for row in cursor.fetchall()]
        except mysql.connector.Error as e:
            self.logger.error(f"Error fetching records: {e}")
            raise
        finally:
            if cursor:
                cursor.close()
            if connection:
                self.close_connection(connection)

    @staticmethod
    def from_row(row) -> ImageRecord:
        data = dict(zip(COLUMNS, row))
        data['is_compressed'] = bool(data['is_compressed'])
        return ImageRecord.from_dict(data)

    @staticmethod
    def to_params(record: ImageRecord) -> tuple:
        return (
            record.id,
            record.original_blob_key,
            record.original_file_name,
            record.content_type,
            record.file_extension,
            record.width,
            record.height,
            record.size_bytes,
            record.uploaded_at,
            record.updated_at,
            int(record.is_compressed),
            record.compression_type,
        )

    def get_by_id(self, image_id: str) -> Optional[ImageRecord]:
        records = self._fetch(f"{_SELECT} WHERE id = %s", (image_id,))
        return records[0] if records else None

    def get_all(self) -> List[ImageRecord]:
        return self._fetch(f"{_SELECT} ORDER BY uploaded_at")

    def add(self, record: ImageRecord) -> None:
        placeholders = ', '.join(['%s'] * len(COLUMNS))
        sql = f"INSERT INTO images ({', '.join(COLUMNS)}) VALUES ({placeholders})"
        self.logger.debug(f"Inserting image record {record.id}")
        self._execute(sql, self.to_params(record))

    def update(self, record: ImageRecord) -> None:
        assignments = ', '.join(f"{column} = %s" for column in COLUMNS[1:])
        sql = f"UPDATE images SET {assignments} WHERE id = %s"
        params = self.to_params(record)
        self._execute(sql, params[1:] + (record.id,))

    def delete(self, image_id: str) -> None:
        self.logger.debug(f"Deleting image record {image_id}")
        self._execute("DELETE FROM images WHERE id = %s", (image_id,))
