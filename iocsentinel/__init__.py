"""iocsentinel: detect supply-chain compromised npm packages in manifests and lockfiles."""

__version__ = "0.3.0"
