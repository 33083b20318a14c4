"""
ONVIF protocol client used by discovery and the connection supervisor
"""

from .client import OnvifCamera, OnvifError, OnvifConnectionError, OnvifFault
from .soap import SoapFault, build_envelope, parse_response

__all__ = ['OnvifCamera', 'OnvifError', 'OnvifConnectionError', 'OnvifFault',
           'SoapFault', 'build_envelope', 'parse_response']
