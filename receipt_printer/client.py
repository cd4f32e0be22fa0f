# Print Agent Client - REST client for the Receipt Print Agent
# Lets the POS UI (or any other process) drive the print pipeline over HTTP

import logging
from typing import Any, Dict, Optional

import requests

logger = logging.getLogger(__name__)


class PrintAgentClient:
    """HTTP client for a running print agent"""

    def __init__(self, base_url: str = 'http://127.0.0.1:8090', token: str = None, timeout: float = 60):
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout
        self.session = requests.Session()

        if token:
            self.session.headers.update({'X-Agent-Token': token})

        self.session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': 'Receipt-Print-Agent-Client/1.0'
        })

    def list_printers(self) -> Dict[str, Any]:
        result = self._request('GET', '/printers')
        result.setdefault('printers', [])
        return result

    def print_direct(self, markup: str, printer_name: Optional[str] = None,
                     copies: int = 1, scale_factor: Optional[int] = None) -> Dict[str, Any]:
        payload = {'content': markup, 'printerName': printer_name, 'copies': copies}
        if scale_factor:
            payload['scaleFactor'] = scale_factor
        return self._request('POST', '/print/direct', payload)

    def print_receipt_content(self, markup: str, options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = dict(options or {})
        payload['content'] = markup
        return self._request('POST', '/print/content', payload)

    def print_receipt(self, receipt_data: Dict[str, Any], options: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        payload = dict(options or {})
        payload['receiptData'] = receipt_data
        return self._request('POST', '/print/receipt', payload)

    def print_receipt_pdf(self, receipt_data: Dict[str, Any]) -> Dict[str, Any]:
        return self._request('POST', '/print/receipt-pdf', {'receiptData': receipt_data})

    def check_health(self) -> bool:
        """Check if the agent is reachable"""
        try:
            response = self.session.get(f"{self.base_url}/health", timeout=5)
            return response.status_code == 200
        except requests.exceptions.RequestException:
            return False

    def _request(self, method: str, path: str, payload: Optional[Dict] = None) -> Dict[str, Any]:
        endpoint = f"{self.base_url}{path}"
        try:
            response = self.session.request(method, endpoint, json=payload, timeout=self.timeout)
        except requests.exceptions.Timeout:
            logger.warning(f"Print agent timed out on {path}")
            return {'success': False, 'error': 'Print agent timed out'}
        except requests.exceptions.ConnectionError:
            logger.warning(f"Print agent not reachable at {self.base_url}")
            return {'success': False, 'error': f'Print agent not reachable at {self.base_url}'}

        if response.status_code == 401:
            logger.error("Authentication failed - check agent token")
            return {'success': False, 'error': 'Authentication failed', 'status_code': 401}

        try:
            body = response.json()
        except ValueError:
            logger.error(f"Invalid response from print agent ({response.status_code}): {response.text[:200]}")
            return {'success': False, 'error': response.text, 'status_code': response.status_code}

        if not isinstance(body, dict):
            return {'success': False, 'error': 'Unexpected response from print agent',
                    'status_code': response.status_code}
        if response.status_code >= 400:
            body.setdefault('success', False)
        return body
