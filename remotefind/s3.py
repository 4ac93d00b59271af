import errno
import stat
from typing import Any, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from remotefind.connector import Connector
from remotefind.utils.config import load_config
from remotefind.utils.entry import FSEntry

DIR_MODE = stat.S_IFDIR | 0o755
FILE_MODE = stat.S_IFREG | 0o644

_ERROR_CODES = {
    'NoSuchBucket': errno.ENOENT,
    'NoSuchKey': errno.ENOENT,
    '404': errno.ENOENT,
    'AccessDenied': errno.EACCES,
    '403': errno.EACCES,
}


def _os_error(err: Exception, path: str) -> OSError:
    code = None
    if isinstance(err, ClientError):
        code = _ERROR_CODES.get(err.response.get('Error', {}).get('Code', ''))
    return OSError(code or errno.EIO, str(err), path)


class S3Connector(Connector):
    """S3 connector.

    Paths have the form ``bucket/key``, an optional ``s3://`` scheme is
    ignored. Prefixes are listed as directories and objects as regular
    files; S3 keeps no ownership, permissions or links.

    Attributes
    ----------
    endpoint_url : str
        Endpoint URL.
    aws_access_key_id : str
        AWS access key ID.
    aws_secret_access_key : str
        AWS secret access key.
    """

    def __init__(
        self,
        endpoint_url: Optional[str] = None,
        aws_access_key_id: Optional[str] = None,
        aws_secret_access_key: Optional[str] = None
    ):
        self.endpoint_url = endpoint_url
        self.aws_access_key_id = aws_access_key_id
        self.aws_secret_access_key = aws_secret_access_key

    @classmethod
    def from_yaml(cls, path: Optional[str], **overrides: Any) -> 'S3Connector':
        """Creates class instance from configuration path.

        Parameters
        ----------
        path : Optional[str]
            path to configuration file.
        **overrides : Any
            Arguments taking precedence over the file, None values are ignored.

        Returns
        -------
        S3Connector
            Class instance.
        """
        return cls(**load_config(path, cls, **overrides))

    def scandir(self, path: str) -> list[FSEntry]:
        client = self._get_client()
        result = []
        bucket, prefix = self._split_path(path.rstrip('/') + '/')
        paginator = client.get_paginator('list_objects')
        try:
            paginator_result = paginator.paginate(Bucket=bucket, Prefix=prefix, Delimiter='/',
                                                  PaginationConfig={'PageSize': 1000})
            for item in paginator_result.search('CommonPrefixes'):
                if item:
                    name = item.get('Prefix')[len(prefix):].rstrip('/')
                    if name:
                        result.append(FSEntry(name, path, DIR_MODE))
            for item in paginator_result.search('Contents'):
                if item:
                    name = item.get('Key')[len(prefix):]
                    if name:
                        mtime = int(item.get('LastModified').timestamp())
                        result.append(FSEntry(name, path, FILE_MODE, size=item.get('Size'),
                                              atime=mtime, mtime=mtime))
        except (ClientError, BotoCoreError) as err:
            raise _os_error(err, path) from err
        finally:
            client.close()
        return result

    def readlink(self, path: str) -> str:
        raise OSError(errno.EINVAL, 'S3 has no symbolic links', path)

    def remove(self, path: str) -> None:
        client = self._get_client()
        bucket, key = self._split_path(path)
        try:
            client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as err:
            raise _os_error(err, path) from err
        finally:
            client.close()

    def rmdir(self, path: str) -> None:
        client = self._get_client()
        bucket, key = self._split_path(path.rstrip('/') + '/')
        try:
            # the marker object sorts before its children
            listing = client.list_objects(Bucket=bucket, Prefix=key, MaxKeys=2)
            if any(item['Key'] != key for item in listing.get('Contents', [])):
                raise OSError(errno.ENOTEMPTY, 'Directory not empty', path)
            client.delete_object(Bucket=bucket, Key=key)
        except (ClientError, BotoCoreError) as err:
            raise _os_error(err, path) from err
        finally:
            client.close()

    def rename(self, src_path: str, dst_path: str) -> None:
        client = self._get_client()
        src_bucket, src_key = self._split_path(src_path)
        dst_bucket, dst_key = self._split_path(dst_path)
        src_prefix = src_key.rstrip('/') + '/'
        dst_prefix = dst_key.rstrip('/') + '/'
        try:
            keys = self._list_keys(client, src_bucket, src_prefix)
            if keys:
                for key in keys:
                    client.copy({'Bucket': src_bucket, 'Key': key}, dst_bucket, key.replace(src_prefix, dst_prefix, 1))
                    client.delete_object(Bucket=src_bucket, Key=key)
            else:
                client.copy({'Bucket': src_bucket, 'Key': src_key}, dst_bucket, dst_key)
                client.delete_object(Bucket=src_bucket, Key=src_key)
        except (ClientError, BotoCoreError) as err:
            raise _os_error(err, src_path) from err
        finally:
            client.close()

    def chmod(self, path: str, mode: int) -> None:
        raise OSError(errno.ENOTSUP, 'S3 has no permission bits', path)

    def realpath(self, path: str) -> str:
        return path.split('://')[-1].rstrip('/') or '/'

    def _get_client(self) -> Any:
        client = boto3.session.Session().client(
            's3',
            endpoint_url=self.endpoint_url,
            aws_access_key_id=self.aws_access_key_id,
            aws_secret_access_key=self.aws_secret_access_key
        )
        return client

    @staticmethod
    def _split_path(path: str) -> list[str]:
        path = path.split('://')[-1]
        parts = path.split('/', maxsplit=1)
        if len(parts) == 1:
            parts.append('')
        return parts

    @staticmethod
    def _list_keys(client: Any, bucket: str, prefix: str) -> list[str]:
        paginator = client.get_paginator('list_objects')
        keys = []
        for page in paginator.paginate(Bucket=bucket, Prefix=prefix, PaginationConfig={'PageSize': 1000}):
            keys.extend(item['Key'] for item in page.get('Contents', []))
        return keys
