from typing import List
from pydantic import BaseModel


class StoredImageRef(BaseModel):
    id: str
    url: str


class UploadData(BaseModel):
    name: str
    email: str
    password: str
    images: List[StoredImageRef]


class MessageResponse(BaseModel):
    success: bool
    message: str


class UploadResponse(MessageResponse):
    data: UploadData


class ListResponse(MessageResponse):
    images: List[StoredImageRef]


class ImageResponse(MessageResponse):
    image: StoredImageRef
