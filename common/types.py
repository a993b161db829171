"""Shared data type definitions (UploadInfo, ShareMeta)."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class UploadInfo:
    """
    Attribution captured once when an upload starts and carried through
    unchanged to the resulting share.
    """
    uploader_ip: str = ""
    user_agent: str = ""
    content_type: str = ""


@dataclass
class ShareMeta:
    """
    Metadata record for a completed share.
    """
    id: str
    created_at: datetime
    file_name: str
    file_size: int
    expires_at: Optional[datetime] = None
    password_hash: str = ""
    info: UploadInfo = field(default_factory=UploadInfo)

    @property
    def password_required(self) -> bool:
        return bool(self.password_hash)

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and self.expires_at < now

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize to the meta.json representation.

        Optional fields are omitted when empty.
        """
        data: Dict[str, Any] = {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
        }
        if self.expires_at is not None:
            data["expires_at"] = self.expires_at.isoformat()
        if self.password_hash:
            data["password_hash"] = self.password_hash
        data["file_name"] = self.file_name
        data["file_size"] = self.file_size
        if self.info.uploader_ip:
            data["uploader_ip"] = self.info.uploader_ip
        if self.info.user_agent:
            data["user_agent"] = self.info.user_agent
        if self.info.content_type:
            data["content_type"] = self.info.content_type
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ShareMeta':
        """
        Deserialize from the meta.json representation.

        Raises:
            KeyError: If a required key is missing
            ValueError: If a timestamp is malformed
        """
        expires_at = data.get("expires_at")
        return cls(
            id=data["id"],
            created_at=datetime.fromisoformat(data["created_at"]),
            file_name=data["file_name"],
            file_size=int(data["file_size"]),
            expires_at=datetime.fromisoformat(expires_at) if expires_at else None,
            password_hash=data.get("password_hash", ""),
            info=UploadInfo(
                uploader_ip=data.get("uploader_ip", ""),
                user_agent=data.get("user_agent", ""),
                content_type=data.get("content_type", ""),
            ),
        )
