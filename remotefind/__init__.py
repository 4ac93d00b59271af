from remotefind.connector import Connector
from remotefind.local import LocalConnector
from remotefind.s3 import S3Connector
from remotefind.sftp import SFTPConnector

__all__ = ['Connector', 'LocalConnector', 'S3Connector', 'SFTPConnector']
