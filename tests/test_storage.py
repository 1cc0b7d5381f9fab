"""
Tests for the upload storage providers
"""
from campushub.config import settings
from campushub.storage.local_provider import LocalStorageProvider
from campushub.storage.provider import StorageProvider, get_storage, object_key


class TestLocalStorage:
    """Uploads to the local development store"""

    def test_default_provider_is_local(self):
        assert isinstance(get_storage(), LocalStorageProvider)

    def test_upload_writes_file_and_returns_url(self, tmp_path):
        storage = LocalStorageProvider(str(tmp_path))
        url = storage.upload('lost-items', 'u1/photo.png', b'png-bytes', 'image/png')
        assert url == f"{settings.public_base_url}/files/local/lost-items/u1/photo.png"
        assert (tmp_path / 'lost-items' / 'u1' / 'photo.png').read_bytes() == b'png-bytes'

    def test_object_key_stays_inside_bucket(self):
        key = object_key('od-letters', '/../../etc/passwd')
        assert key.startswith('od-letters/')
        assert '..' not in key

    def test_upload_is_the_provider_interface(self):
        """Providers expose upload only"""
        public = {name for name in vars(StorageProvider) if not name.startswith('_')}
        assert public == {'upload'}
