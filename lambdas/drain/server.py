"""Standalone HTTP server for the drain delay service.

Usage:
    drain-delay --aws-region eu-west-2
    drain-delay --kubeconfig ~/.kube/config --aws-profile staging --port 9090

The FastAPI routes call the same request building, resolver and status
mapping as drain.handler.lambda_handler. uvicorn stops accepting connections
on SIGINT/SIGTERM and waits for in-flight drain requests before exiting.
"""

import argparse
import logging
import sys

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from drain import handler
from drain.resolver import DrainResolver
from shared.clients import build_clients
from shared.config import LOG_LEVELS, AppConfig

logger = logging.getLogger(__name__)

app = FastAPI(
    title='drain-delay',
    description='Delay pod termination until its IP has drained from the ingress load balancer',
)


# Plain def routes: FastAPI runs them on its threadpool, so a blocking drain
# request does not hold up the event loop or other requests.
@app.get('/health')
def health():
    return {'status': 'OK'}


@app.get('/drain-delay')
def drain_delay(request: Request):
    status_code, body = handler.drain_delay(dict(request.query_params))
    return JSONResponse(status_code=status_code, content=body)


def parse_args(argv=None) -> AppConfig:
    """Parse command line flags; defaults come from the environment."""
    parser = argparse.ArgumentParser(
        description='Delay pod termination until its IP has drained from the ingress load balancer.',
    )
    try:
        env = AppConfig.from_env()
    except ValueError as e:
        parser.error(str(e))

    parser.add_argument('--kubeconfig', default=env.kubeconfig,
                        help='Path of the kubeconfig file to use (default: in-cluster config)')
    parser.add_argument('--aws-region', default=env.aws_region, help='The AWS region')
    parser.add_argument('--aws-profile', default=env.aws_profile, help='The AWS profile to use')
    parser.add_argument('--port', type=int, default=env.port, help='Port to listen on')
    parser.add_argument('--log-level', default=env.log_level, choices=LOG_LEVELS, type=str.upper)
    parser.add_argument('--retry-missing-hostname', action=argparse.BooleanOptionalAction,
                        default=env.retry_missing_hostname,
                        help='Keep retrying until the deadline when the ingress has no hostname yet')
    args = parser.parse_args(argv)
    return AppConfig(
        kubeconfig=args.kubeconfig,
        aws_region=args.aws_region,
        aws_profile=args.aws_profile,
        port=args.port,
        log_level=args.log_level,
        retry_missing_hostname=args.retry_missing_hostname,
    )


def main(argv=None) -> int:
    config = parse_args(argv)
    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )
    logger.info('Starting drain delay server')

    try:
        clients = build_clients(config)
    except Exception as e:
        logger.error('Could not create clients: %s', e)
        return 1

    handler.configure(DrainResolver(clients, retry_missing_hostname=config.retry_missing_hostname))
    uvicorn.run(app, host='0.0.0.0', port=config.port, log_level=config.log_level.lower())
    logger.info('Successfully closed server')
    return 0


if __name__ == '__main__':
    sys.exit(main())
