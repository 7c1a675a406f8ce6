"""CLI entry point for starting the admission webhook server."""

import argparse

import uvicorn

from windows_overcommit.common.config import load_config
from windows_overcommit.common.logging import get_logger, setup_logging
from windows_overcommit.web import create_app

log = get_logger(__name__)


def main():
    parser = argparse.ArgumentParser(
        description="Start the Windows vCPU Overcommit Webhook"
    )
    parser.add_argument(
        "--host", type=str, default=None,
        help="Host to bind the server to (default: from config, 0.0.0.0)"
    )
    parser.add_argument(
        "--port", type=int, default=None,
        help="Port for the server (default: from config, 8443)"
    )
    parser.add_argument(
        "--config", type=str, default=None,
        help="Path to YAML config file"
    )
    parser.add_argument(
        "--tls-cert", type=str, default=None,
        help="TLS certificate file (default: /ssl_certs/tls.crt)"
    )
    parser.add_argument(
        "--tls-key", type=str, default=None,
        help="TLS private key file (default: /ssl_certs/tls.key)"
    )
    parser.add_argument(
        "--insecure", action="store_true",
        help="Serve plain HTTP instead of HTTPS (local testing only)"
    )
    parser.add_argument(
        "--kubeconfig", type=str, default=None,
        help="Path to kubeconfig (default: in-cluster, then ~/.kube/config)"
    )
    parser.add_argument(
        "--log-level", type=str, default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Log level (default: INFO)"
    )

    args = parser.parse_args()
    setup_logging(level=args.log_level, component="webhook")

    config = load_config(args.config)
    if args.host:
        config.server.host = args.host
    if args.port:
        config.server.port = args.port
    if args.tls_cert:
        config.server.tls_cert_file = args.tls_cert
    if args.tls_key:
        config.server.tls_key_file = args.tls_key
    if args.kubeconfig:
        config.cluster.kubeconfig = args.kubeconfig

    ssl_options = {}
    if not args.insecure:
        ssl_options = {
            "ssl_certfile": config.server.tls_cert_file,
            "ssl_keyfile": config.server.tls_key_file,
        }

    log.info(
        f"Node filter: {config.node_filter.label_key} in "
        f"{config.node_filter.label_values}"
    )
    log.info(
        f"Starting webhook server on {config.server.host}:{config.server.port} "
        f"({'http' if args.insecure else 'https'})"
    )

    app = create_app(config=config)
    uvicorn.run(
        app,
        host=config.server.host,
        port=config.server.port,
        log_level=args.log_level.lower(),
        **ssl_options,
    )


if __name__ == "__main__":
    main()
