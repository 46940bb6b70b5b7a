"""CA chain construction and bundle export.

Exports the certificate/key pair and chain types, the chain builder,
and the bundle exporter.
"""

from carotate.ca.base import CaChain, CertAndKey
from carotate.ca.bundle import Bundle, BundleExporter
from carotate.ca.chain import CaChainBuilder
from carotate.ca.keys import KeyPairFactory

__all__ = [
    "Bundle",
    "BundleExporter",
    "CaChain",
    "CaChainBuilder",
    "CertAndKey",
    "KeyPairFactory",
]
