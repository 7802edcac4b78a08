"""azspeech - Azure AI Speech resource provisioning toolkit

Philosophy:
- Ruthless simplicity
- Brick architecture (self-contained modules)
- Security by design (keys never logged, sessions never persisted)
- Fail fast with helpful guidance

azspeech signs in to Azure, walks the user through choosing or creating an
Azure AI Speech capable resource, and writes its credentials into a local
sample project's env file and config.json.
"""

__version__ = "0.1.0"
__all__ = ["__version__"]
