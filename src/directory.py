"""
Kubernetes-backed instance and release channel directories.

Converts Unleash and ReleaseChannel custom resources to domain models and
writes version-source changes back without touching any other field.
"""

import copy
import logging
from typing import Any, Dict, List

from clients import KubernetesRestClient
from errors import (
    ChannelNotFoundError,
    InstanceNotFoundError,
    KubernetesApiError,
)
from models import Channel, Instance, InstanceConfig, VersionSource

logger = logging.getLogger(__name__)

UNLEASH_PLURAL = "unleashes"
RELEASE_CHANNEL_PLURAL = "releasechannels"

CUSTOM_IMAGE_REPO = "europe-north1-docker.pkg.dev/nais-io/nais/images/"
CUSTOM_IMAGE_NAME = "unleash-v4"

READY_CONDITIONS = ("Reconciled", "Connected")


def _env_var(crd: Dict[str, Any], name: str, default: str = "") -> str:
    for env in crd.get("spec", {}).get("extraEnvVars") or []:
        if env.get("name") == name:
            return env.get("value", default)
    return default


def _int_or(value: str, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _custom_version(crd: Dict[str, Any]) -> str:
    parts = (crd.get("spec", {}).get("customImage") or "").split(":")
    return parts[1] if len(parts) > 1 else ""


def _release_channel(crd: Dict[str, Any]) -> str:
    return (crd.get("spec", {}).get("releaseChannel") or {}).get("name") or ""


def version_source_from_crd(crd: Dict[str, Any]) -> VersionSource:
    """Custom image wins over release channel, matching the operator."""
    custom_version = _custom_version(crd)
    if custom_version:
        return VersionSource.custom(custom_version)
    channel = _release_channel(crd)
    if channel:
        return VersionSource.channel(channel)
    return VersionSource.unset()


def is_ready(crd: Dict[str, Any]) -> bool:
    conditions = {
        c.get("type"): c.get("status")
        for c in (crd.get("status") or {}).get("conditions") or []
    }
    return all(conditions.get(t) == "True" for t in READY_CONDITIONS)


def crd_to_instance(crd: Dict[str, Any]) -> Instance:
    metadata = crd.get("metadata", {})
    status = crd.get("status") or {}
    return Instance(
        name=metadata.get("name", ""),
        namespace=metadata.get("namespace", ""),
        is_ready=is_ready(crd),
        version_source=version_source_from_crd(crd),
        version=status.get("version", ""),
        resolved_image=status.get("resolvedReleaseChannelImage", ""),
        custom_version=_custom_version(crd),
        release_channel=_release_channel(crd),
    )


def crd_to_config(crd: Dict[str, Any]) -> InstanceConfig:
    """Load the full instance configuration from an Unleash resource."""
    spec = crd.get("spec", {})
    federation = spec.get("federation") or {}
    enabled = bool(federation.get("enabled", False))
    return InstanceConfig(
        name=crd.get("metadata", {}).get("name", ""),
        version_source=version_source_from_crd(crd),
        enable_federation=enabled,
        federation_nonce=federation.get("secretNonce", "") if enabled else "",
        allowed_teams=_env_var(crd, "TEAMS_ALLOWED_TEAMS") if enabled else "",
        allowed_namespaces=",".join(federation.get("namespaces") or []) if enabled else "",
        allowed_clusters=",".join(federation.get("clusters") or []) if enabled else "",
        log_level=_env_var(crd, "LOG_LEVEL", "warn"),
        database_pool_max=_int_or(_env_var(crd, "DATABASE_POOL_MAX", "3"), 3),
        database_pool_idle_timeout_ms=_int_or(
            _env_var(crd, "DATABASE_POOL_IDLE_TIMEOUT_MS", "1000"), 1000
        ),
        raw=copy.deepcopy(crd),
    )


def config_to_crd(config: InstanceConfig) -> Dict[str, Any]:
    """
    Render a configuration back to its Unleash resource.

    Only the version-source fields are rewritten; the rest of the loaded
    document, including ``metadata.resourceVersion``, is kept as is.
    """
    crd = copy.deepcopy(config.raw)
    spec = crd.setdefault("spec", {})
    vs = config.version_source

    spec.pop("customImage", None)
    spec.pop("releaseChannel", None)
    if vs.is_custom:
        spec["customImage"] = f"{CUSTOM_IMAGE_REPO}{CUSTOM_IMAGE_NAME}:{vs.value}"
    elif vs.is_channel:
        spec["releaseChannel"] = {"name": vs.value}
    return crd


def crd_to_channel(crd: Dict[str, Any]) -> Channel:
    """Resolve a ReleaseChannel resource; status.version wins over the image tag."""
    image = crd.get("spec", {}).get("image", "") or ""
    version = image.rsplit(":", 1)[-1] if ":" in image else image
    status_version = (crd.get("status") or {}).get("version", "")
    if status_version and status_version != "unknown":
        version = status_version
    return Channel(
        name=crd.get("metadata", {}).get("name", ""),
        target_version=version,
        image=image,
    )


class UnleashDirectory:
    """Instance directory backed by Unleash custom resources."""

    def __init__(self, client: KubernetesRestClient):
        self.client = client

    def list(self, exclude_channel_instances: bool = False) -> List[Instance]:
        instances = [
            crd_to_instance(item)
            for item in self.client.list_resources(UNLEASH_PLURAL)
        ]
        if exclude_channel_instances:
            instances = [i for i in instances if not i.release_channel]
        logger.debug(
            f"Listed {len(instances)} Unleash instance(s) "
            f"(exclude_channel_instances={exclude_channel_instances})"
        )
        return instances

    def _get_crd(self, name: str) -> Dict[str, Any]:
        try:
            return self.client.get_resource(UNLEASH_PLURAL, name)
        except KubernetesApiError as e:
            if e.status_code == 404:
                raise InstanceNotFoundError(f"unleash instance {name} not found") from e
            raise

    def get(self, name: str) -> Instance:
        return crd_to_instance(self._get_crd(name))

    def read_config(self, name: str) -> InstanceConfig:
        return crd_to_config(self._get_crd(name))

    def write_config(self, name: str, config: InstanceConfig) -> None:
        old_source = version_source_from_crd(config.raw)
        self.client.replace_resource(UNLEASH_PLURAL, name, config_to_crd(config))
        if old_source != config.version_source:
            logger.info(
                f"Unleash instance {name} version source changed: "
                f"{old_source} -> {config.version_source}"
            )
        else:
            logger.info(f"Updated Unleash instance {name}")


class ReleaseChannelDirectory:
    """Channel directory backed by ReleaseChannel custom resources."""

    def __init__(self, client: KubernetesRestClient):
        self.client = client

    def get(self, name: str) -> Channel:
        try:
            crd = self.client.get_resource(RELEASE_CHANNEL_PLURAL, name)
        except KubernetesApiError as e:
            if e.status_code == 404:
                raise ChannelNotFoundError(f"release channel {name} not found") from e
            raise
        return crd_to_channel(crd)
