from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest

from argon.utils.storage import LocalStorage, S3Storage, get_storage, sds_storage_key


def test_sds_storage_key():
    assert sds_storage_key("t1", "c1", 1767225600000) == "sds/t1/c1-1767225600000.pdf"


def test_sds_storage_key_defaults_to_now():
    key = sds_storage_key("t1", "c1")

    assert key.startswith("sds/t1/c1-")
    assert key.endswith(".pdf")
    assert key[len("sds/t1/c1-"):-len(".pdf")].isdigit()


async def test_local_upload(tmp_path):
    storage = LocalStorage(tmp_path, "https://files.test/")

    key = await storage.upload("sds/t1/c1-1.pdf", b"%PDF-1.4", content_type="application/pdf")

    assert key == "sds/t1/c1-1.pdf"
    assert (tmp_path / "sds" / "t1" / "c1-1.pdf").read_bytes() == b"%PDF-1.4"
    assert await storage.get_url(key) == "https://files.test/sds/t1/c1-1.pdf"


async def test_local_upload_outside_root(tmp_path):
    storage = LocalStorage(tmp_path / "root")

    with pytest.raises(ValueError):
        await storage.upload("../escaped.pdf", b"%PDF")

    assert not (tmp_path / "escaped.pdf").exists()


async def test_s3_upload_and_url():
    client = MagicMock()
    client.put_object = AsyncMock()
    client.generate_presigned_url = AsyncMock(return_value="https://s3.test/signed")

    @asynccontextmanager
    async def factory():
        yield client

    storage = S3Storage(factory, "hmsnova")

    await storage.upload("sds/t1/c1-1.pdf", b"%PDF", content_type="application/pdf")
    url = await storage.get_url("sds/t1/c1-1.pdf", expires_in=60)

    client.put_object.assert_awaited_once_with(
        Bucket="hmsnova",
        Body=b"%PDF",
        Key="sds/t1/c1-1.pdf",
        ContentType="application/pdf",
    )
    client.generate_presigned_url.assert_awaited_once_with(
        "get_object",
        Params={"Bucket": "hmsnova", "Key": "sds/t1/c1-1.pdf"},
        ExpiresIn=60,
    )
    assert url == "https://s3.test/signed"


def test_get_storage(tmp_path):
    assert isinstance(get_storage("local", base_path=tmp_path), LocalStorage)
    assert isinstance(get_storage("s3", s3=MagicMock(), bucket="hmsnova"), S3Storage)
    assert isinstance(get_storage("r2", s3=MagicMock(), bucket="hmsnova"), S3Storage)


@pytest.mark.parametrize("storage_type,kwargs", [
    ("s3", {}),
    ("ftp", {}),
])
def test_get_storage_rejects(storage_type, kwargs):
    with pytest.raises(ValueError):
        get_storage(storage_type, **kwargs)
