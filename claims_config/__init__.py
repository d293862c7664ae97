"""
claims_config -- single public entrypoint for workflow configuration.

Responsibility:
    Provides the ONLY way to obtain the workflow policy at runtime through
    ``get_active_policy()``.  Returns a frozen kernel ``WorkflowPolicy``.
    YAML loading is internal tooling and never exposed to callers.

Architecture position:
    Configuration -- YAML-driven policy pipeline.  This package sits above
    ``claims_kernel``.  The kernel MUST NEVER import from ``claims_config``;
    services receive the compiled policy through their constructors.

Invariants enforced:
    - Validation before compilation: an invalid set never produces a policy.
    - Deterministic compilation: the same YAML always yields the same
      policy and checksum.

Failure modes:
    - ``FileNotFoundError`` -- the requested policy file does not exist.
    - ``ConfigurationError`` -- validation failed; ``errors`` lists every
      problem found.
    - ``ValueError`` / ``KeyError`` -- malformed durations or missing keys.

Audit relevance:
    Every successful call emits a ``WORKFLOW_CONFIG_TRACE`` log entry with
    the config id, version and checksum, tying each decision back to the
    policy that governed it.
"""

from __future__ import annotations

from pathlib import Path

from claims_config.compiler import compile_workflow_policy
from claims_config.loader import load_configuration_set
from claims_config.validator import validate_configuration
from claims_kernel.domain.policy import WorkflowPolicy
from claims_kernel.exceptions import ConfigurationError
from claims_kernel.logging_config import get_logger

_logger = get_logger("config")

_DEFAULT_CONFIG_DIR = Path(__file__).parent / "sets"
DEFAULT_CONFIG_NAME = "default"


def get_active_policy(
    name: str = DEFAULT_CONFIG_NAME,
    config_dir: Path | None = None,
) -> WorkflowPolicy:
    """The ONLY public configuration entrypoint.

    Args:
        name: Policy set name; resolves to ``<config_dir>/<name>.yaml``.
        config_dir: Override path to the policy sets directory.
            Defaults to claims_config/sets/.

    Raises:
        FileNotFoundError: No such policy set.
        ConfigurationError: Validation failed.
    """
    path = (config_dir or _DEFAULT_CONFIG_DIR) / f"{name}.yaml"
    if not path.is_file():
        raise FileNotFoundError(f"Workflow policy set not found: {path}")

    config = load_configuration_set(path)

    validation = validate_configuration(config)
    for warning in validation.warnings:
        _logger.warning(
            "workflow_config_warning",
            extra={"config_id": config.config_id, "warning": warning},
        )
    if not validation.is_valid:
        raise ConfigurationError(validation.errors)

    policy = compile_workflow_policy(config)

    assert policy.checksum == config.checksum, (
        f"Checksum drift: compiled={policy.checksum!r} != source={config.checksum!r}"
    )

    _logger.info(
        "WORKFLOW_CONFIG_TRACE",
        extra={
            "trace_type": "WORKFLOW_CONFIG_TRACE",
            "config_set_id": config.config_id,
            "config_set_version": config.version,
            "checksum": config.checksum,
            "urgency_tier_count": len(config.urgency_tiers),
            "document_type_count": len(config.document_authorities),
            "role_count": len(config.role_authorities),
        },
    )
    return policy


__all__ = ["get_active_policy", "ConfigurationError", "DEFAULT_CONFIG_NAME"]
