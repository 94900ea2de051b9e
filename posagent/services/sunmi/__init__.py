from posagent.services.sunmi.client import SunmiClient
from posagent.services.sunmi.signing import RequestSigner

__all__ = ["SunmiClient", "RequestSigner"]
