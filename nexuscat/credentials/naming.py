"""Credential key naming convention.

Provider-level secrets are named ``AI_KEY_<PROVIDER>``; model-specific secrets
``AI_KEY_<PROVIDER>_<MODEL>`` where the model part has ``-`` and ``/``
replaced by ``_``. Both are upper-cased. These names are shared with ``.env``
files and the process environment and must not change.
"""

KEY_PREFIX = "AI_KEY_"

_SEPARATORS = ("-", "/")


def fold_separators(value: str) -> str:
    """Replace dash and slash separators with underscores."""
    for separator in _SEPARATORS:
        value = value.replace(separator, "_")
    return value


def normalize_model_name(model_name: str) -> str:
    return fold_separators(model_name.strip()).upper()


def provider_key_name(provider_name: str) -> str:
    """``AI_KEY_<PROVIDER_UPPER>``, or an empty string for a blank provider."""
    if not provider_name or not provider_name.strip():
        return ""
    return f"{KEY_PREFIX}{provider_name.strip().upper()}"


def model_key_name(provider_name: str, model_name: str) -> str:
    """``AI_KEY_<PROVIDER_UPPER>_<MODEL_NORMALIZED_UPPER>``."""
    if not provider_name or not provider_name.strip() or not model_name or not model_name.strip():
        return ""
    return f"{KEY_PREFIX}{provider_name.strip().upper()}_{normalize_model_name(model_name)}"


def candidate_key_names(provider_name: str, model_name: str | None = None) -> list[str]:
    """Exact key names to try, most specific first."""
    names = []
    if model_name:
        names.append(model_key_name(provider_name, model_name))
    names.append(provider_key_name(provider_name))
    return [name for name in names if name]


def folded_key_names(provider_name: str, model_name: str | None = None) -> list[str]:
    """Separator-folded variants of :func:`candidate_key_names` that differ from them.

    Environment variable names cannot contain ``-`` or ``/``, so a provider
    such as ``open-router`` is looked up as ``AI_KEY_OPEN_ROUTER``.
    """
    exact = candidate_key_names(provider_name, model_name)
    folded = []
    for name in exact:
        variant = fold_separators(name)
        if variant not in exact and variant not in folded:
            folded.append(variant)
    return folded


def cache_key(provider_name: str, model_name: str | None = None) -> str:
    """Resolved-credential cache key: ``provider`` or ``provider:model``."""
    provider = provider_name.strip()
    if model_name and model_name.strip():
        return f"{provider}:{model_name.strip()}"
    return provider
