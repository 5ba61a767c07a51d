"""Shared Kubernetes access helpers for handlers and resolvers."""

from __future__ import annotations

import time
from typing import Any

from kubernetes import client

from .. import metrics
from ..constants import API_GROUP, API_VERSION, PLURAL_R2_BUCKET, STATE_PENDING, STATE_READY
from ..errors import DependencyNotReady
from ..utils.cache import get_cached_object, make_cache_key, set_cached_object
from ..utils.rate_limit import handle_rate_limit_error, rate_limit_k8s


def _load_kube_config() -> None:
    from kubernetes import config

    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config()


def get_k8s_client() -> client.CustomObjectsApi:
    """Get Kubernetes CustomObjectsApi client."""
    _load_kube_config()
    return client.CustomObjectsApi()


def get_core_client() -> client.CoreV1Api:
    """Get Kubernetes CoreV1Api client."""
    _load_kube_config()
    return client.CoreV1Api()


def _call_k8s(operation: str, fn: Any, **kwargs: Any) -> Any:
    attempt = 0
    while True:
        start_time = time.time()
        try:
            result = rate_limit_k8s(fn)(**kwargs)
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="success").inc()
            return result
        except Exception as e:
            metrics.api_call_total.labels(api_type="k8s", operation=operation, result="error").inc()
            if handle_rate_limit_error(e, attempt):
                attempt += 1
                continue
            raise
        finally:
            duration = time.time() - start_time
            metrics.api_call_duration_seconds.labels(api_type="k8s", operation=operation).observe(duration)


def get_custom_object(
    api: Any,
    plural: str,
    name: str,
    namespace: str | None = None,
) -> dict[str, Any]:
    """Get a custom object of this operator's API group.

    Args:
        api: Kubernetes CustomObjectsApi instance
        plural: Resource plural
        name: Object name
        namespace: Namespace, None for cluster scoped resources

    Raises:
        client.exceptions.ApiException: If not found or API error
    """
    if namespace is None:
        return _call_k8s(
            f"get_{plural}",
            api.get_cluster_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            plural=plural,
            name=name,
        )
    return _call_k8s(
        f"get_{plural}",
        api.get_namespaced_custom_object,
        group=API_GROUP,
        version=API_VERSION,
        namespace=namespace,
        plural=plural,
        name=name,
    )


def get_custom_object_with_cache(
    api: Any,
    kind: str,
    plural: str,
    name: str,
    namespace: str | None = None,
) -> dict[str, Any]:
    """Get a custom object, serving repeated reads from the TTL cache."""
    cache_key = make_cache_key(kind, namespace or "", name)
    cached = get_cached_object(cache_key)
    if cached is not None:
        metrics.api_call_total.labels(api_type="k8s", operation=f"get_{plural}", result="cache_hit").inc()
        return cached

    obj = get_custom_object(api, plural, name, namespace)
    set_cached_object(cache_key, obj)
    return obj


def list_custom_objects(api: Any, plural: str, namespace: str | None = None) -> list[dict[str, Any]]:
    """List custom objects of this operator's API group (never cached)."""
    if namespace is None:
        response = _call_k8s(
            f"list_{plural}",
            api.list_cluster_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            plural=plural,
        )
    else:
        response = _call_k8s(
            f"list_{plural}",
            api.list_namespaced_custom_object,
            group=API_GROUP,
            version=API_VERSION,
            namespace=namespace,
            plural=plural,
        )
    return list(response.get("items", []))


def get_live_generation(api: Any, plural: str, name: str, namespace: str | None = None) -> int | None:
    """Read the current generation of an object, None when it is gone."""
    try:
        obj = get_custom_object(api, plural, name, namespace)
    except client.exceptions.ApiException as e:
        if e.status == 404:
            return None
        raise
    return obj.get("metadata", {}).get("generation")


def find_r2_bucket(api: Any, namespace: str | None, bucket_name: str) -> dict[str, Any] | None:
    """Find the R2Bucket in ``namespace`` managing the named remote bucket.

    A bucket's remote name is ``spec.name``, or its resource name when unset.
    """
    for obj in list_custom_objects(api, PLURAL_R2_BUCKET, namespace):
        remote_name = (obj.get("spec") or {}).get("name") or obj.get("metadata", {}).get("name")
        if remote_name == bucket_name:
            return obj
    return None


def require_ready_bucket(api: Any, namespace: str | None, bucket_name: str) -> dict[str, Any]:
    """Return the R2Bucket managing ``bucket_name`` once it reports Ready.

    Raises:
        DependencyNotReady: The R2Bucket does not exist or is not Ready yet
    """
    obj = find_r2_bucket(api, namespace, bucket_name)
    if obj is None:
        raise DependencyNotReady(f"R2Bucket for bucket {bucket_name} not found in namespace {namespace}")
    state = (obj.get("status") or {}).get("state") or STATE_PENDING
    if state != STATE_READY:
        raise DependencyNotReady(f"R2Bucket {obj['metadata']['name']} is {state}, waiting for Ready")
    return obj
