import hashlib
import io

import httpx
import pytest
from fastapi import UploadFile
from starlette.datastructures import Headers

from services.errors import InvalidArgument, UploadFailed
from services.media_gateway import (
    IMAGE_EXTENSIONS,
    IMAGE_MIME_PREFIXES,
    MediaGateway,
    UnconfiguredMediaGateway,
    discard_local,
    get_media_gateway,
    sign_params,
    stage_upload,
)


def _gateway(handler, **kwargs):
    return MediaGateway(
        "demo-cloud",
        "key-123",
        "secret-xyz",
        api_base="https://api.cloudinary.test/v1_1",
        folder="videotube",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _upload_file(name: str, content: bytes, content_type: str) -> UploadFile:
    return UploadFile(
        file=io.BytesIO(content),
        filename=name,
        headers=Headers({"content-type": content_type}),
    )


def test_sign_params_sorts_keys_and_skips_empty_values():
    signature = sign_params({"timestamp": 1315060510, "public_id": "sample", "folder": ""}, "abcd")

    expected = hashlib.sha1(b"public_id=sample&timestamp=1315060510abcd").hexdigest()
    assert signature == expected


@pytest.mark.asyncio
async def test_upload_posts_signed_request_and_removes_local_file(tmp_path):
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.content
        return httpx.Response(
            200,
            json={
                "secure_url": "https://res.cloudinary.test/video/upload/v1/videotube/clip.mp4",
                "public_id": "videotube/clip",
                "resource_type": "video",
                "duration": 12.5,
            },
        )

    local = tmp_path / "clip.mp4"
    local.write_bytes(b"video-bytes")

    uploaded = await _gateway(handler).upload(local, "video")

    assert uploaded.url.endswith("/videotube/clip.mp4")
    assert uploaded.public_id == "videotube/clip"
    assert uploaded.resource_type == "video"
    assert uploaded.duration == 12.5
    assert seen["url"] == "https://api.cloudinary.test/v1_1/demo-cloud/video/upload"
    assert b'name="signature"' in seen["body"]
    assert b'name="api_key"' in seen["body"]
    assert not local.exists()


@pytest.mark.asyncio
async def test_upload_failure_still_removes_local_file(tmp_path):
    local = tmp_path / "avatar.png"
    local.write_bytes(b"image-bytes")

    gateway = _gateway(lambda request: httpx.Response(401, json={"error": {"message": "bad key"}}))
    with pytest.raises(UploadFailed):
        await gateway.upload(local, "image")

    assert not local.exists()


@pytest.mark.asyncio
async def test_upload_network_error_becomes_upload_failed(tmp_path):
    local = tmp_path / "avatar.png"
    local.write_bytes(b"image-bytes")

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    with pytest.raises(UploadFailed):
        await _gateway(handler).upload(local, "image")
    assert not local.exists()


@pytest.mark.asyncio
async def test_upload_response_without_public_id_is_rejected(tmp_path):
    local = tmp_path / "avatar.png"
    local.write_bytes(b"image-bytes")

    gateway = _gateway(lambda request: httpx.Response(200, json={"secure_url": "https://x"}))
    with pytest.raises(UploadFailed):
        await gateway.upload(local, "image")


@pytest.mark.asyncio
async def test_upload_of_missing_local_file_fails(tmp_path):
    gateway = _gateway(lambda request: httpx.Response(200, json={}))
    with pytest.raises(UploadFailed):
        await gateway.upload(tmp_path / "gone.png", "image")


@pytest.mark.asyncio
async def test_destroy_is_best_effort():
    ok = _gateway(lambda request: httpx.Response(200, json={"result": "ok"}))
    assert await ok.destroy("videotube/clip", "video") is True
    assert await ok.destroy(None) is False

    rejected = _gateway(lambda request: httpx.Response(500, text="boom"))
    assert await rejected.destroy("videotube/clip") is False

    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    assert await _gateway(handler).destroy("videotube/clip") is False


@pytest.mark.asyncio
async def test_stage_upload_writes_file_to_temp_dir(tmp_path, monkeypatch):
    monkeypatch.setattr("services.media_gateway.settings.MEDIA_TEMP_DIR", str(tmp_path))

    staged = await stage_upload(
        _upload_file("my avatar.png", b"png-bytes", "image/png"),
        allowed_prefixes=IMAGE_MIME_PREFIXES,
        allowed_extensions=IMAGE_EXTENSIONS,
        max_bytes=1024,
        label="Avatar",
    )

    assert staged.parent == tmp_path
    assert staged.name.endswith("_my_avatar.png")
    assert staged.read_bytes() == b"png-bytes"


@pytest.mark.asyncio
async def test_stage_upload_rejects_oversized_empty_and_wrong_type(tmp_path, monkeypatch):
    monkeypatch.setattr("services.media_gateway.settings.MEDIA_TEMP_DIR", str(tmp_path))
    kwargs = {
        "allowed_prefixes": IMAGE_MIME_PREFIXES,
        "allowed_extensions": IMAGE_EXTENSIONS,
        "max_bytes": 4,
        "label": "Avatar",
    }

    with pytest.raises(InvalidArgument, match="too large"):
        await stage_upload(_upload_file("big.png", b"12345678", "image/png"), **kwargs)
    with pytest.raises(InvalidArgument, match="empty"):
        await stage_upload(_upload_file("empty.png", b"", "image/png"), **kwargs)
    with pytest.raises(InvalidArgument, match="Unsupported"):
        await stage_upload(_upload_file("doc.pdf", b"pdf", "application/pdf"), **kwargs)

    assert list(tmp_path.iterdir()) == []


@pytest.mark.asyncio
async def test_large_upload_is_sent_in_chunks(tmp_path):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if request.headers["content-range"].endswith("-9/10"):
            return httpx.Response(
                200,
                json={
                    "secure_url": "https://res.cloudinary.test/video/upload/v1/videotube/long.mp4",
                    "public_id": "videotube/long",
                    "resource_type": "video",
                },
            )
        return httpx.Response(200, json={"done": False})

    local = tmp_path / "long.mp4"
    local.write_bytes(b"0123456789")

    uploaded = await _gateway(handler, chunk_size=4).upload(local, "video")

    assert uploaded.public_id == "videotube/long"
    assert [r.headers["content-range"] for r in requests] == ["bytes 0-3/10", "bytes 4-7/10", "bytes 8-9/10"]
    assert len({r.headers["x-unique-upload-id"] for r in requests}) == 1
    assert b"0123" in requests[0].content
    assert b"89" in requests[2].content
    assert not local.exists()


@pytest.mark.asyncio
async def test_chunked_upload_stops_at_first_rejected_chunk(tmp_path):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        if len(requests) == 2:
            return httpx.Response(400, json={"error": {"message": "bad chunk"}})
        return httpx.Response(200, json={"done": False})

    local = tmp_path / "long.mp4"
    local.write_bytes(b"0123456789")

    with pytest.raises(UploadFailed):
        await _gateway(handler, chunk_size=4).upload(local, "video")

    assert len(requests) == 2
    assert not local.exists()


@pytest.mark.asyncio
async def test_small_upload_is_a_single_request(tmp_path):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json={"secure_url": "https://x/a.png", "public_id": "videotube/a"})

    local = tmp_path / "a.png"
    local.write_bytes(b"abcd")

    await _gateway(handler, chunk_size=4).upload(local, "image")

    assert len(requests) == 1
    assert "content-range" not in requests[0].headers


def test_discard_local_tolerates_missing_and_none(tmp_path):
    staged = tmp_path / "staged.bin"
    staged.write_bytes(b"x")

    discard_local(None, tmp_path / "never-written.bin", staged)

    assert not staged.exists()


def test_discard_local_logs_when_unlink_fails(tmp_path, monkeypatch, caplog):
    staged = tmp_path / "locked.bin"
    staged.write_bytes(b"x")

    def refuse(self, missing_ok=False):
        raise PermissionError("read-only filesystem")

    monkeypatch.setattr("pathlib.Path.unlink", refuse)
    discard_local(staged)

    assert staged.exists()
    assert "Could not cleanup temporary upload" in caplog.text


@pytest.mark.asyncio
async def test_missing_credentials_give_an_unconfigured_gateway(tmp_path, monkeypatch):
    monkeypatch.setattr("services.media_gateway._gateway", None)
    monkeypatch.setattr("services.media_gateway.settings.CLOUDINARY_CLOUD_NAME", "")
    monkeypatch.setattr("services.media_gateway.settings.CLOUDINARY_API_KEY", "")
    monkeypatch.setattr("services.media_gateway.settings.CLOUDINARY_API_SECRET", "")

    gateway = get_media_gateway()

    assert isinstance(gateway, UnconfiguredMediaGateway)
    assert await gateway.destroy("videotube/clip", "video") is False
    assert await gateway.destroy(None) is False

    local = tmp_path / "clip.mp4"
    local.write_bytes(b"video")
    with pytest.raises(UploadFailed, match="not configured"):
        await gateway.upload(local, "video")
    assert not local.exists()
