from dataclasses import dataclass, asdict, fields
from typing import Optional, Dict, Any


@dataclass(frozen=True)
class FileRecord:
    """
    Represents one filesystem entry found during a scan.
    Field names double as the shard JSON keys.
    """
    name: str
    path: str               # parent directory, trailing separator included
    size: int
    isdir: int              # 0/1
    machine: str
    ip: str
    on_external_source: int  # 0/1
    external_name: str
    file_type: str = ""
    file_mime: str = ""
    file_hash: str = ""
    modified: str = ""

    # Assigned by the store, never serialized into shards
    id: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data.pop("id")
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FileRecord":
        """Builds a record from a shard entry. Unknown keys are ignored."""
        known = {f.name for f in fields(cls)}
        return cls(**{k: v for k, v in data.items() if k in known})

    def as_row(self) -> tuple:
        """Column order used by the store's INSERT statement."""
        return (
            self.name, self.path, self.size, self.isdir, self.machine, self.ip,
            self.on_external_source, self.external_name, self.file_type,
            self.file_mime, self.file_hash, self.modified,
        )
