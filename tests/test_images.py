import os, sys, boto3
from io import BytesIO

from fastapi.testclient import TestClient
from moto import mock_aws
from PIL import Image

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app.core.config import Settings
from app.main import create_app

REGION = "us-east-1"


def _image_bytes(fmt="PNG"):
    img = Image.new("RGB", (2, 2), color=(1, 2, 3))
    buf = BytesIO()
    img.save(buf, format=fmt)
    return buf.getvalue()


@mock_aws
def test_images_upload_fetch_delete_success(tmp_path):
    boto3.client("s3", region_name=REGION).create_bucket(Bucket="images-bucket")
    settings = Settings(
        aws_region=REGION,
        bucket_name="images-bucket",
        public_base_url="https://cdn.example.com",
        upload_dir=str(tmp_path / "uploads"),
    )
    client = TestClient(create_app(settings))

    files = [
        ("profilePhotos", ("a.png", _image_bytes("PNG"), "image/png")),
        ("profilePhotos", ("b.jpg", _image_bytes("JPEG"), "image/jpeg")),
    ]
    r = client.post("/api/upload", data={"name": "Ada", "email": "a@b.com", "password": "x"}, files=files)
    assert r.status_code == 200, r.text
    images = r.json()["data"]["images"]
    assert len(images) == 2
    for image in images:
        assert image["id"].startswith("users/profilePhotos_")
        assert image["url"] == f"https://cdn.example.com/image/{image['id']}"

    # Temporary copies are gone once the upload finished
    assert list((tmp_path / "uploads").iterdir()) == []

    head = boto3.client("s3", region_name=REGION).head_object(
        Bucket="images-bucket", Key=f"image/{images[1]['id']}"
    )
    assert head["ContentType"] == "image/jpeg"

    image_id = images[0]["id"]
    r = client.get("/api/fetch", params={"id": image_id})
    assert r.status_code == 200
    assert r.json()["image"]["url"] == images[0]["url"]

    r = client.get("/api/fetch/all")
    assert r.status_code == 200
    assert len(r.json()["images"]) == 2

    r = client.delete("/api/delete", params={"id": image_id})
    assert r.status_code == 200
    assert r.json() == {"success": True, "message": "Image successfully deleted"}

    r = client.get("/api/fetch", params={"id": image_id})
    assert r.status_code == 404
    assert r.json()["success"] is False

    r = client.delete("/api/delete/all")
    assert r.status_code == 200
    assert client.get("/api/fetch/all").json()["images"] == []
