"""
Command-line interface for hurley: a curl-like HTTP client with a
performance testing mode.
"""

import sys
import json
import signal
import logging
import argparse
import asyncio
from typing import List, Optional

import aiohttp
import uvloop
from rich.console import Console
from rich.text import Text

from hurley.configuration import (
    DEFAULT_CONCURRENCY,
    DEFAULT_METHOD,
    DEFAULT_OUTPUT_FORMAT,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_TOTAL_REQUESTS,
    LOG_FORMAT,
    LOG_LEVEL,
    OUTPUT_FORMATS,
)
from hurley.errors import HurleyError, InvalidConfig
from hurley.http.client import HttpClient
from hurley.http.request import HttpRequest
from hurley.observability.prom import PrometheusExporter
from hurley.perf.dataset import Dataset, JsonBody, RequestTemplate
from hurley.perf.report import PerfReport
from hurley.perf.runner import PerfRunner, RunConfig

# Set up logging (only if not already configured)
if not logging.root.handlers:
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)
logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_ERROR = 1
EXIT_INTERRUPTED = 130


class HurleyCLI:
    """CLI entry point: one-shot requests or a performance test run."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console()
        self.parser = self._create_parser()

    def _create_parser(self):
        """Create the argument parser."""
        parser = argparse.ArgumentParser(
            prog='hurley',
            description='A curl-like HTTP client with performance testing capabilities',
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog="""
Examples:
  # Simple GET request
  hurley https://httpbin.org/get

  # POST with JSON body
  hurley -X POST https://httpbin.org/post -H "Content-Type: application/json" -d '{"name": "test"}'

  # Performance test: 100 requests, 10 concurrent
  hurley https://httpbin.org/get -c 10 -n 100

  # Performance test with a dataset, JSON report
  hurley https://httpbin.org --perf data.json -c 20 -n 500 --output json
            """
        )

        parser.add_argument('url', help='Target URL (base URL when --perf is given)')
        parser.add_argument('-X', '--method', default=DEFAULT_METHOD,
                            help=f'HTTP method (default: {DEFAULT_METHOD})')
        parser.add_argument('-H', '--header', dest='headers', action='append', default=[],
                            help='Request header "Name: Value" (repeatable)')
        parser.add_argument('-d', '--data', help='Request body (inline)')
        parser.add_argument('-f', '--file', dest='body_file', help='Read request body from file')
        parser.add_argument('-i', '--include', dest='include_headers', action='store_true',
                            help='Include response headers in output')
        parser.add_argument('-L', '--location', dest='follow_redirects', action='store_true',
                            help='Follow redirects (up to 10)')
        parser.add_argument('-v', '--verbose', action='store_true',
                            help='Show request details and timing')
        parser.add_argument('--timeout', type=float, default=DEFAULT_TIMEOUT_SECONDS,
                            help=f'Per-request timeout in seconds (default: {DEFAULT_TIMEOUT_SECONDS:g})')

        perf = parser.add_argument_group('performance testing')
        perf.add_argument('--perf', dest='perf_file',
                          help='Dataset file (JSON array, or NDJSON with .ndjson/.jsonl suffix)')
        perf.add_argument('-c', '--concurrency', type=int, default=DEFAULT_CONCURRENCY,
                          help=f'Concurrent requests (default: {DEFAULT_CONCURRENCY})')
        perf.add_argument('-n', '--requests', dest='total_requests', type=int,
                          default=DEFAULT_TOTAL_REQUESTS,
                          help=f'Total number of requests (default: {DEFAULT_TOTAL_REQUESTS})')
        perf.add_argument('--output', dest='output_format', type=str.lower,
                          choices=OUTPUT_FORMATS, default=DEFAULT_OUTPUT_FORMAT,
                          help=f'Report format (default: {DEFAULT_OUTPUT_FORMAT})')
        perf.add_argument('--seed', type=int, help='Random seed for dataset entry selection')
        perf.add_argument('--duration', type=float,
                          help='Stop admitting requests after this many seconds')
        perf.add_argument('--prometheus-port', type=int,
                          help='Expose live metrics for Prometheus on this port')

        return parser

    @staticmethod
    def is_perf_mode(args) -> bool:
        return bool(args.perf_file) or args.total_requests > 1 or args.concurrency > 1

    def build_request(self, args) -> HttpRequest:
        """Build the one-shot request from the parsed arguments."""
        request = (HttpRequest(args.url)
                   .method(args.method)
                   .headers_from_strings(args.headers)
                   .timeout(args.timeout)
                   .follow_redirects(args.follow_redirects))
        if args.data is not None:
            request.body(args.data)
        elif args.body_file:
            request.body_from_file(args.body_file)
        return request

    @staticmethod
    def _json_body(request: HttpRequest) -> Optional[JsonBody]:
        if request.body_text is None:
            return None
        try:
            return JsonBody(json.loads(request.body_text))
        except ValueError as e:
            raise InvalidConfig(f"Request body must be valid JSON in performance mode: {e}") from e

    def build_run_config(self, args, request: HttpRequest) -> RunConfig:
        """Translate CLI arguments into a RunConfig.

        With a dataset, the request body (if any) is sent for entries that have none.

        Raises:
            DatasetError: If the dataset file cannot be loaded
            InvalidConfig: If the request body is not JSON
        """
        common = dict(
            concurrency=args.concurrency,
            total_requests=args.total_requests,
            timeout=args.timeout,
            run_timeout=args.duration,
            follow_redirects=args.follow_redirects,
            seed=args.seed,
        )
        body = self._json_body(request)
        if args.perf_file:
            dataset = Dataset.from_file(args.perf_file)
            return RunConfig(base_url=args.url, dataset=dataset,
                             default_headers=dict(request.headers), default_body=body, **common)

        base_url, template = RequestTemplate.single(
            request.http_method, request.url, headers=request.headers, body=body
        )
        return RunConfig(base_url=base_url, template=template, **common)

    async def run_single(self, args) -> int:
        """Send one request and print the response."""
        request = self.build_request(args)
        client = HttpClient(verbose=args.verbose, console=self.console)
        try:
            response = await client.execute(request)
        except asyncio.TimeoutError:
            logger.error(f"Request timed out after {request.timeout_seconds:g}s")
            return EXIT_ERROR
        except aiohttp.ClientError as e:
            logger.error(f"Request failed: {e}")
            return EXIT_ERROR

        response.render(self.console, include_headers=args.include_headers, verbose=args.verbose)
        return EXIT_OK

    async def run_perf(self, args) -> int:
        """Run a performance test and print the report."""
        request = self.build_request(args)
        config = self.build_run_config(args, request)

        exporter = None
        if args.prometheus_port is not None:
            exporter = PrometheusExporter(port=args.prometheus_port)
            exporter.start_server()

        if args.output_format == 'text':
            self._print_banner(args)

        runner = PerfRunner(config, exporter=exporter)
        interrupted = []

        def on_interrupt():
            interrupted.append(True)
            runner.cancel()

        loop = asyncio.get_running_loop()
        try:
            loop.add_signal_handler(signal.SIGINT, on_interrupt)
            handler_installed = True
        except (NotImplementedError, RuntimeError, ValueError):
            # No signal support (non-main thread or platform); KeyboardInterrupt still aborts
            handler_installed = False

        try:
            snapshot = await runner.run()
        finally:
            if handler_installed:
                loop.remove_signal_handler(signal.SIGINT)

        PerfReport.print(snapshot, args.output_format, console=self.console)
        return EXIT_INTERRUPTED if interrupted else EXIT_OK

    def _print_banner(self, args) -> None:
        self.console.print(Text("Starting Performance Test", style="bold cyan"))
        url = Text("   URL: ")
        url.append(args.url, style="yellow")
        self.console.print(url)
        self.console.print(f"   Concurrency: {args.concurrency}", highlight=False)
        self.console.print(f"   Total Requests: {args.total_requests}", highlight=False)
        if args.perf_file:
            dataset = Text("   Dataset: ")
            dataset.append(args.perf_file, style="yellow")
            self.console.print(dataset)
        self.console.print()

    def run(self, args: Optional[List[str]] = None) -> int:
        """Run the CLI with the given arguments."""
        if args is None:
            args = sys.argv[1:]

        parsed_args = self.parser.parse_args(args)

        try:
            if parsed_args.concurrency < 1 or parsed_args.total_requests < 1:
                raise InvalidConfig("concurrency (-c) and request count (-n) must be at least 1")
            if self.is_perf_mode(parsed_args):
                return asyncio.run(self.run_perf(parsed_args))
            return asyncio.run(self.run_single(parsed_args))

        except KeyboardInterrupt:
            logger.info("Operation interrupted by user")
            return EXIT_INTERRUPTED
        except HurleyError as e:
            logger.error(f"Error: {e}")
            return EXIT_ERROR
        except OSError as e:
            logger.error(f"Error: {e}")
            return EXIT_ERROR


def main():
    """Main entry point."""
    asyncio.set_event_loop_policy(uvloop.EventLoopPolicy())
    cli = HurleyCLI()
    sys.exit(cli.run())


if __name__ == '__main__':
    main()
