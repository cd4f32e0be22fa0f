#!/usr/bin/env python3
"""
Receipt Print Agent - local HTTP front end for the receipt print pipeline
"""

import asyncio
import json
import logging
import threading
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer

from receipt_printer.config import load_config
from receipt_printer.facade import PrintPipelineFacade
from receipt_printer.logging_config import setup_logging


logger = logging.getLogger(__name__)


class PrintAgent:
    def __init__(self, config):
        self.config = config
        self.loop = None
        self.facade = None
        self.server = None
        self.running = False

    def start(self, host=None):
        self.loop = asyncio.new_event_loop()
        if host is None:
            # Qt must be created on the thread that runs the asyncio loop
            from receipt_printer.qt_surface import QtSurfaceHost
            asyncio.set_event_loop(self.loop)
            host = QtSurfaceHost()
        self.facade = PrintPipelineFacade(host, self.config)

        self.server = ThreadingHTTPServer((self.config.http_host, self.config.http_port), Handler)
        self.server.agent = self
        threading.Thread(target=self.server.serve_forever, daemon=True).start()
        self.running = True
        logger.info(f"Receipt Print Agent listening on http://{self.config.http_host}:{self.port}")

    @property
    def port(self) -> int:
        return self.server.server_address[1]

    def call(self, coro):
        """Run a facade coroutine on the agent loop from an HTTP thread"""
        return asyncio.run_coroutine_threadsafe(coro, self.loop).result()

    def get_status(self):
        return {
            'running': self.running,
            'requests_handled': self.facade.requests_handled,
            'pending_temp_files': len(self.facade.tracker.pending()),
            'port': self.port,
        }

    def run_forever(self):
        try:
            self.loop.run_forever()
        finally:
            self.stop()

    def stop(self):
        if not self.running:
            return
        logger.info("Stopping...")
        self.running = False
        self.server.shutdown()
        self.server.server_close()
        self.facade.shutdown()
        self.loop.close()


class Handler(BaseHTTPRequestHandler):
    @property
    def agent(self) -> PrintAgent:
        return self.server.agent

    def do_GET(self):
        if self.path == '/health':
            self._send_json(200, {'ok': True})
        elif not self._authorized():
            return
        elif self.path == '/status':
            self._send_json(200, self.agent.get_status())
        elif self.path == '/printers':
            self._dispatch(self.agent.facade.list_printers())
        else:
            self._send_json(404, {'success': False, 'error': f'Unknown path {self.path}'})

    def do_POST(self):
        if not self._authorized():
            return
        try:
            body = self._read_json()
        except ValueError as e:
            self._send_json(400, {'success': False, 'error': f'Invalid JSON body: {e}'})
            return

        facade = self.agent.facade
        if self.path == '/print/direct':
            coro = facade.print_direct(
                body.get('content'), body.get('printerName'),
                body.get('copies') or 1, body.get('scaleFactor'),
            )
        elif self.path == '/print/content':
            coro = facade.print_receipt_content(body.get('content'), body)
        elif self.path == '/print/receipt':
            coro = facade.print_receipt(body.get('receiptData'), body)
        elif self.path == '/print/receipt-pdf':
            coro = facade.print_receipt_pdf(body.get('receiptData'), body)
        else:
            self._send_json(404, {'success': False, 'error': f'Unknown path {self.path}'})
            return

        self._dispatch(coro)

    def _dispatch(self, coro):
        try:
            result = self.agent.call(coro)
        except Exception as e:
            logger.exception(f"Unhandled error on {self.path}")
            self._send_json(500, {'success': False, 'error': str(e) or type(e).__name__})
            return
        self._send_json(200, result)

    def _authorized(self) -> bool:
        token = self.agent.config.agent_token
        if token and self.headers.get('X-Agent-Token') != token:
            self._send_json(401, {'success': False, 'error': 'Invalid agent token'})
            return False
        return True

    def _read_json(self) -> dict:
        length = int(self.headers.get('Content-Length') or 0)
        if not length:
            return {}
        body = json.loads(self.rfile.read(length).decode('utf-8'))
        if not isinstance(body, dict):
            raise ValueError('expected a JSON object')
        return body

    def _send_json(self, status: int, payload: dict):
        data = json.dumps(payload).encode('utf-8')
        self.send_response(status)
        self.send_header('Content-type', 'application/json')
        self.send_header('Content-Length', str(len(data)))
        self.end_headers()
        self.wfile.write(data)

    def log_message(self, format, *args):
        logger.debug("HTTP %s", format % args)


def main():
    config = load_config()
    setup_logging(log_path=config.log_path, level=config.log_level)

    agent = PrintAgent(config)
    agent.start()

    print("=" * 50)
    print("  Receipt Print Agent")
    print("=" * 50)
    print(f"Listening on http://{config.http_host}:{config.http_port}")
    print(f"Default printer: {config.printer_name or 'system default'}")
    print("Logs: logs/receipt_printer.log")
    print("=" * 50)
    print("Press Ctrl+C to stop")

    try:
        agent.run_forever()
    except KeyboardInterrupt:
        pass


if __name__ == '__main__':
    main()
