# pixelmorpher/services/cloudinary_service.py

import cloudinary
import cloudinary.uploader
import cloudinary.api
from cloudinary import CloudinaryImage
from typing import Optional, Dict, Any, List
from pixelmorpher.config import settings


def _effect(name: str, **params) -> str:
    parts = [f"{key}_{value}" for key, value in params.items() if value not in (None, "", False)]
    return f"{name}:{';'.join(parts)}" if parts else name


def build_transformation_chain(config: Optional[Dict[str, Any]], width: Optional[int], height: Optional[int]) -> List[Dict[str, Any]]:
    """Translate a transformation config into Cloudinary transformation steps."""
    config = config or {}
    chain: List[Dict[str, Any]] = []

    if config.get("restore"):
        chain.append({"effect": "gen_restore"})
    if config.get("removeBackground"):
        chain.append({"effect": "background_removal"})

    # Generative remove and recolor need a prompt to select the object
    remove = config.get("remove")
    if remove and remove.get("prompt"):
        chain.append({"effect": _effect(
            "gen_remove",
            prompt=remove.get("prompt"),
            multiple="true" if remove.get("multiple") else None,
            **{"remove-shadow": "true" if remove.get("removeShadow") else None},
        )})

    recolor = config.get("recolor")
    if recolor and recolor.get("prompt"):
        chain.append({"effect": _effect(
            "gen_recolor",
            prompt=recolor.get("prompt"),
            **{"to-color": (recolor.get("to") or "").lstrip("#") or None},
            multiple="true" if recolor.get("multiple") else None,
        )})

    if config.get("fillBackground"):
        chain.append({"background": "gen_fill", "crop": "pad", "width": width, "height": height})
    elif width and height:
        chain.append({"crop": "limit", "width": width, "height": height})

    return chain


class CloudinaryService:
    def __init__(self, cloud_name: str = None, api_key: str = None, api_secret: str = None, folder: str = None):
        cloudinary.config(
            cloud_name = cloud_name or settings.cloudinary_cloud_name,
            api_key = api_key or settings.cloudinary_api_key,
            api_secret = api_secret or settings.cloudinary_api_secret,
            secure = True
        )
        self.folder = folder or settings.cloudinary_upload_folder

    def upload_image(self, file_content: bytes, public_id: str, folder: str = None, **options) -> Dict[str, Any]:
        """Upload an image to Cloudinary"""
        try:
            result = cloudinary.uploader.upload(
                file_content,
                public_id=public_id,
                folder=folder or self.folder,
                resource_type="image",
                **options
            )
            return result
        except Exception as e:
            raise Exception(f"Cloudinary upload failed: {str(e)}")

    def destroy_image(self, public_id: str) -> Dict[str, Any]:
        """Delete an image from Cloudinary"""
        try:
            result = cloudinary.uploader.destroy(public_id)
            return result
        except Exception as e:
            raise Exception(f"Cloudinary delete failed: {str(e)}")

    def build_transformation_url(self, public_id: str, width: Optional[int], height: Optional[int],
                                 config: Optional[Dict[str, Any]]) -> str:
        """Return the URL that renders ``public_id`` with ``config`` applied"""
        try:
            chain = build_transformation_chain(config, width, height)
            return CloudinaryImage(public_id).build_url(transformation=chain)
        except Exception as e:
            raise Exception(f"Cloudinary transformation failed: {str(e)}")

    def ping(self) -> bool:
        try:
            cloudinary.api.ping()
            return True
        except Exception:
            return False


# Create the instance that will be imported
cloudinary_service = CloudinaryService()
