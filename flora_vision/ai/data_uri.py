"""
图片 data URI 编解码

格式：data:<mimetype>;base64,<payload>
"""
import base64
import binascii
import io
import re
from typing import Optional, Tuple

from PIL import Image, UnidentifiedImageError

from flora_vision.errors import SchemaValidationError

DATA_URI_PATTERN = re.compile(
    r"data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,(?P<payload>[A-Za-z0-9+/]+={0,2})"
)
IMAGE_MEDIA_TYPE_PATTERN = re.compile(r"image/[\w.+-]+")


def encode_data_uri(data: bytes, media_type: str) -> str:
    """把二进制数据编码为 data URI"""
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{media_type};base64,{payload}"


def decode_data_uri(uri: str, field: str = "photoDataUri") -> Tuple[str, bytes]:
    """解析 data URI

    Returns:
        (media_type, 原始字节)

    Raises:
        SchemaValidationError: 格式不合法
    """
    if not isinstance(uri, str):
        raise SchemaValidationError(field, "必须是字符串")

    match = DATA_URI_PATTERN.fullmatch(uri)
    if not match:
        raise SchemaValidationError(field, "必须是 data:<mimetype>;base64,<data> 格式")

    try:
        data = base64.b64decode(match.group("payload"), validate=True)
    except (binascii.Error, ValueError) as e:
        raise SchemaValidationError(field, f"base64 解码失败: {e}")

    return match.group("media_type"), data


def guess_media_type(data: bytes) -> Optional[str]:
    """用 Pillow 识别图片类型，无法识别返回 None"""
    if not data:
        return None

    try:
        with Image.open(io.BytesIO(data)) as image:
            image_format = image.format
    except (UnidentifiedImageError, OSError):
        return None

    return Image.MIME.get(image_format) if image_format else None


def image_to_data_uri(data: bytes, media_type: Optional[str] = None) -> str:
    """图片字节 -> data URI（未指定类型时自动识别）

    Raises:
        SchemaValidationError: 数据为空、不是可识别的图片，或声明的类型不是 image/*
    """
    if not data:
        raise SchemaValidationError("photoDataUri", "图片数据为空")

    if media_type is not None and not IMAGE_MEDIA_TYPE_PATTERN.fullmatch(media_type):
        raise SchemaValidationError("photoDataUri", f"不支持的图片类型: {media_type!r}")

    media_type = media_type or guess_media_type(data)
    if not media_type:
        raise SchemaValidationError("photoDataUri", "无法识别图片类型")

    return encode_data_uri(data, media_type)
