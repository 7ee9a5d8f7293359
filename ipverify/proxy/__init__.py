"""Proxy candidates, credential resolution and tunneled requests.

This module provides the pieces the verifier chains together to obtain an
egress path near a postal code.
"""

from ipverify.proxy.candidates import select_candidates
from ipverify.proxy.credentials import (
    CredentialResolver,
    ProxyCredential,
    RemoteCredentialResolver,
    TemplateCredentialResolver,
    default_resolvers,
    resolve_credential,
)
from ipverify.proxy.tunnel import fetch_via_tunnel

__all__ = [
    "select_candidates",
    "CredentialResolver",
    "ProxyCredential",
    "RemoteCredentialResolver",
    "TemplateCredentialResolver",
    "default_resolvers",
    "resolve_credential",
    "fetch_via_tunnel",
]
