"""Typed model of the spate devcontainer document.

The document names a base image, the volumes to mount, the features layered
on top of the image and the editor customizations. Everything else a
devcontainer.json may carry is kept as-is so that loading and rendering a
document never drops keys this model does not know about.
"""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional, Tuple, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    field_validator,
    model_validator,
)

ALLOWED_MOUNT_TYPES = {"bind", "volume", "tmpfs"}

# Keys that may replace "image" as the source of the container.
IMAGE_ALTERNATIVES = ("build", "dockerComposeFile")

_EXTENSION_ID = re.compile(r"^-?[A-Za-z0-9][A-Za-z0-9_-]*\.[A-Za-z0-9][A-Za-z0-9._-]*$")
_MOUNT_KEY_ALIASES = {
    "source": "source",
    "src": "source",
    "target": "target",
    "destination": "target",
    "dst": "target",
    "type": "type",
}


def _dedupe(seq: List[str]) -> List[str]:
    seen = set()
    ordered = []
    for item in seq:
        if item in seen:
            continue
        seen.add(item)
        ordered.append(item)
    return ordered


def _split_reference(
    ref: str,
) -> Tuple[Optional[str], str, Optional[str], Optional[str]]:
    """Split an OCI style reference into (registry, path, tag, digest)."""
    digest = None
    if "@" in ref:
        ref, digest = ref.split("@", 1)

    tag = None
    last = ref.rsplit("/", 1)[-1]
    if ":" in last:
        ref, tag = ref.rsplit(":", 1)

    parts = ref.split("/")
    registry = None
    if len(parts) > 1 and (
        "." in parts[0] or ":" in parts[0] or parts[0] == "localhost"
    ):
        registry = parts[0]
        parts = parts[1:]
    return registry, "/".join(parts), tag, digest


class ImageReference(BaseModel):
    """Parsed form of the document's base image reference."""

    reference: str
    registry: Optional[str] = None
    repository: str
    tag: Optional[str] = None
    digest: Optional[str] = None

    @classmethod
    def parse(cls, reference: str) -> "ImageReference":
        if not reference or not reference.strip():
            raise ValueError("image reference cannot be empty")
        registry, repository, tag, digest = _split_reference(reference.strip())
        if not repository:
            raise ValueError(f"image reference '{reference}' has no repository")
        return cls(
            reference=reference,
            registry=registry,
            repository=repository,
            tag=tag,
            digest=digest,
        )

    @property
    def effective_tag(self) -> str:
        return self.tag or "latest"

    @property
    def pinned(self) -> bool:
        """True when the reference names a digest or a tag other than latest."""
        return bool(self.digest) or (
            self.tag is not None and self.tag != "latest"
        )


class FeatureRef(BaseModel):
    """A devcontainer feature identifier broken into its parts."""

    id: str = Field(..., description="Feature identifier as written in the document")
    registry: Optional[str] = None
    namespace: Optional[str] = None
    name: str
    version: Optional[str] = None
    digest: Optional[str] = None
    options: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("id")
    @classmethod
    def _non_empty(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("feature id cannot be empty")
        return value

    @classmethod
    def parse(
        cls, feature_id: str, options: Optional[Dict[str, Any]] = None
    ) -> "FeatureRef":
        if not feature_id or not feature_id.strip():
            raise ValueError("feature id cannot be empty")
        options = dict(options or {})

        # Local folders and tarball URLs carry no registry or version.
        if feature_id.startswith(("./", "../", "http://", "https://")):
            name = feature_id.rstrip("/").rsplit("/", 1)[-1]
            for suffix in (".tgz", ".tar.gz"):
                if name.endswith(suffix):
                    name = name[: -len(suffix)]
            return cls(id=feature_id, name=name, options=options)

        registry, path, version, digest = _split_reference(feature_id)
        namespace, _, name = path.rpartition("/")
        return cls(
            id=feature_id,
            registry=registry,
            namespace=namespace or None,
            name=name,
            version=version,
            digest=digest,
            options=options,
        )

    @property
    def pinned(self) -> bool:
        return bool(self.digest) or (
            self.version is not None and self.version != "latest"
        )


class MountSpec(BaseModel):
    """Volume, bind or tmpfs mount added to the container."""

    source: str = ""
    target: str
    type: str = "volume"
    extra: Optional[str] = Field(
        None, description="Additional docker mount options (e.g., consistency=cached)"
    )

    _authored_as_string: bool = PrivateAttr(default=False)

    @field_validator("type")
    @classmethod
    def _allowed_type(cls, value: str) -> str:
        if value not in ALLOWED_MOUNT_TYPES:
            raise ValueError(f"mount type must be one of {sorted(ALLOWED_MOUNT_TYPES)}")
        return value

    @field_validator("target")
    @classmethod
    def _absolute_target(cls, value: str) -> str:
        if not value.startswith("/"):
            raise ValueError(
                "mount target must be an absolute path inside the container"
            )
        return value

    @model_validator(mode="after")
    def _source_required(self) -> "MountSpec":
        if self.type != "tmpfs" and not self.source:
            raise ValueError(f"{self.type} mount for {self.target} needs a source")
        return self

    @classmethod
    def from_devcontainer_string(cls, value: str) -> "MountSpec":
        """Parse ``source=...,target=...,type=...`` into a mount."""
        fields: Dict[str, str] = {}
        extra: List[str] = []
        for part in value.split(","):
            part = part.strip()
            if not part:
                continue
            key, sep, item = part.partition("=")
            canonical = _MOUNT_KEY_ALIASES.get(key.strip().lower()) if sep else None
            if canonical is None:
                extra.append(part)
                continue
            fields[canonical] = item.strip()

        if "target" not in fields:
            raise ValueError(f"mount '{value}' does not declare a target")

        mount = cls(extra=",".join(extra) or None, **fields)
        mount._authored_as_string = True
        return mount

    def as_devcontainer_string(self) -> str:
        parts = []
        if self.source:
            parts.append(f"source={self.source}")
        parts.extend([f"target={self.target}", f"type={self.type}"])
        if self.extra:
            parts.append(self.extra)
        return ",".join(parts)

    def to_devcontainer_value(self) -> Union[str, Dict[str, str]]:
        # The object form has no slot for extra options.
        if self._authored_as_string or self.extra:
            return self.as_devcontainer_string()
        value = {"source": self.source, "target": self.target, "type": self.type}
        if not self.source:
            del value["source"]
        return value


class VSCodeCustomization(BaseModel):
    """Editor settings and recommended extensions."""

    model_config = ConfigDict(extra="allow")

    settings: Dict[str, Any] = Field(default_factory=dict)
    extensions: List[str] = Field(default_factory=list)

    @field_validator("extensions")
    @classmethod
    def _extension_ids(cls, values: List[str]) -> List[str]:
        for value in values:
            if not _EXTENSION_ID.match(value):
                raise ValueError(
                    f"extension '{value}' must look like 'publisher.name'"
                )
        return _dedupe(values)

    def to_devcontainer_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.settings:
            payload["settings"] = self.settings
        if self.extensions:
            payload["extensions"] = self.extensions
        payload.update(self.model_extra or {})
        return payload


class Customizations(BaseModel):
    """Tool specific customizations; only the vscode block is typed."""

    model_config = ConfigDict(extra="allow")

    vscode: Optional[VSCodeCustomization] = None

    def to_devcontainer_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {}
        if self.vscode is not None:
            vscode = self.vscode.to_devcontainer_dict()
            if vscode:
                payload["vscode"] = vscode
        payload.update(self.model_extra or {})
        return payload


class DevcontainerDocument(BaseModel):
    """A devcontainer.json document.

    ``name``, ``image``, ``mounts``, ``features`` and ``customizations`` are
    typed. Unknown keys (``remoteUser``, ``postCreateCommand`` ...) are kept
    in ``model_extra`` and rendered back unchanged.
    """

    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    image: Optional[str] = None
    mounts: List[MountSpec] = Field(default_factory=list)
    features: Dict[str, Dict[str, Any]] = Field(default_factory=dict)
    customizations: Optional[Customizations] = None

    @field_validator("image")
    @classmethod
    def _image_not_blank(cls, value: Optional[str]) -> Optional[str]:
        if value is not None:
            ImageReference.parse(value)
        return value

    @field_validator("mounts", mode="before")
    @classmethod
    def _parse_mount_strings(cls, values: Any) -> Any:
        if not isinstance(values, list):
            return values
        return [
            MountSpec.from_devcontainer_string(v) if isinstance(v, str) else v
            for v in values
        ]

    @field_validator("features", mode="before")
    @classmethod
    def _normalize_features(cls, value: Any) -> Any:
        if not isinstance(value, dict):
            return value
        normalized = {}
        for feature_id, options in value.items():
            if not isinstance(feature_id, str) or not feature_id.strip():
                raise ValueError("feature id cannot be empty")
            # Legacy shorthand: "feature-id": "1.2"
            if isinstance(options, str):
                options = {"version": options}
            elif options is None:
                options = {}
            normalized[feature_id] = options
        return normalized

    @model_validator(mode="after")
    def _has_container_source(self) -> "DevcontainerDocument":
        extra = self.model_extra or {}
        if self.image is None and not any(key in extra for key in IMAGE_ALTERNATIVES):
            raise ValueError(
                "document must declare an image, build or dockerComposeFile"
            )
        return self

    @model_validator(mode="after")
    def _no_duplicate_mount_targets(self) -> "DevcontainerDocument":
        targets = set()
        for mount in self.mounts:
            if mount.target in targets:
                raise ValueError(f"duplicate mount target {mount.target}")
            targets.add(mount.target)
        return self

    @property
    def image_reference(self) -> Optional[ImageReference]:
        return ImageReference.parse(self.image) if self.image else None

    @property
    def vscode(self) -> VSCodeCustomization:
        if self.customizations and self.customizations.vscode:
            return self.customizations.vscode
        return VSCodeCustomization()

    def feature_refs(self) -> List[FeatureRef]:
        return [
            FeatureRef.parse(feature_id, options)
            for feature_id, options in self.features.items()
        ]

    def to_devcontainer_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "name": self.name,
            "image": self.image,
            "mounts": [mount.to_devcontainer_value() for mount in self.mounts],
            "features": self.features,
        }
        if self.customizations is not None:
            payload["customizations"] = self.customizations.to_devcontainer_dict()
        payload = {k: v for k, v in payload.items() if v not in (None, {}, [])}
        payload.update(self.model_extra or {})
        return payload

    def devcontainer_json(self, indent: int = 2) -> str:
        return json.dumps(self.to_devcontainer_dict(), indent=indent, ensure_ascii=False)

    def _revalidated(self, payload: Dict[str, Any]) -> "DevcontainerDocument":
        return DevcontainerDocument.model_validate(payload)

    def add_feature(
        self, feature_id: str, options: Optional[Dict[str, Any]] = None
    ) -> "DevcontainerDocument":
        """Declare a feature, replacing the options of an existing one."""
        payload = self.to_devcontainer_dict()
        features = dict(payload.get("features", {}))
        features[feature_id] = dict(options or {})
        payload["features"] = features
        return self._revalidated(payload)

    def remove_feature(self, feature_id: str) -> "DevcontainerDocument":
        if feature_id not in self.features:
            raise KeyError(f"feature '{feature_id}' is not declared")
        payload = self.to_devcontainer_dict()
        features = dict(payload["features"])
        del features[feature_id]
        payload["features"] = features
        return self._revalidated(payload)

    def add_mount(
        self, mount: Union[MountSpec, str, Dict[str, Any]]
    ) -> "DevcontainerDocument":
        if isinstance(mount, MountSpec):
            value: Any = mount.to_devcontainer_value()
        else:
            value = mount
        payload = self.to_devcontainer_dict()
        payload["mounts"] = list(payload.get("mounts", [])) + [value]
        return self._revalidated(payload)

    def add_extension(self, extension_id: str) -> "DevcontainerDocument":
        payload = self.to_devcontainer_dict()
        vscode = payload.setdefault("customizations", {}).setdefault("vscode", {})
        vscode["extensions"] = list(vscode.get("extensions", [])) + [extension_id]
        return self._revalidated(payload)

    def set_setting(self, key: str, value: Any) -> "DevcontainerDocument":
        if not key:
            raise ValueError("setting key cannot be empty")
        payload = self.to_devcontainer_dict()
        vscode = payload.setdefault("customizations", {}).setdefault("vscode", {})
        settings = dict(vscode.get("settings", {}))
        settings[key] = value
        vscode["settings"] = settings
        return self._revalidated(payload)


def default_document() -> DevcontainerDocument:
    """The development environment used for the spate workspace."""

    return DevcontainerDocument(
        name="Rust",
        image="mcr.microsoft.com/devcontainers/rust:1-1-bullseye",
        mounts=[
            MountSpec(
                source="devcontainer-cargo-cache-${devcontainerId}",
                target="/usr/local/cargo",
                type="volume",
            ),
        ],
        features={
            "ghcr.io/devcontainers/features/common-utils:2": {
                "installZsh": True,
                "configureZshAsDefaultShell": True,
            },
            "ghcr.io/devcontainers/features/github-cli:1": {"version": "latest"},
        },
        customizations=Customizations(
            vscode=VSCodeCustomization(
                settings={
                    "lldb.executable": "/usr/bin/lldb",
                    "files.watcherExclude": {"**/target/**": True},
                    "rust-analyzer.check.command": "clippy",
                },
                extensions=[
                    "vadimcn.vscode-lldb",
                    "rust-lang.rust-analyzer",
                    "tamasfe.even-better-toml",
                    "fill-labs.dependi",
                ],
            )
        ),
    )


if __name__ == "__main__":
    print(default_document().devcontainer_json())
