"""
Proxygen pull request instances, listed and deleted through the proxygen Lambda functions.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .models import EnumerationError, ReclamationError

logger = logging.getLogger(__name__)

INSTANCE_GET_FUNCTION = "lambda-resources-ProxygenPTLInstanceGet"
INSTANCE_DELETE_FUNCTION = "lambda-resources-ProxygenPTLInstanceDelete"

# Apigee environments that host pull request instances
PULL_REQUEST_ENVIRONMENTS = ("internal-dev", "internal-dev-sandbox")


class LambdaInvocationError(ReclamationError):
    """A proxygen Lambda function reported an error."""


class ProxygenInstanceStore:
    """Lists and deletes the Apigee instances of one API via proxygen."""

    def __init__(
        self,
        api_name: str,
        private_key_arn: str,
        kid: str,
        client=None,
        region: Optional[str] = None,
    ):
        self.api_name = api_name
        self.private_key_arn = private_key_arn
        self.kid = kid
        self.client = client or boto3.client("lambda", region_name=region)

    def _payload(self, environment: str, **extra) -> Dict[str, Any]:
        payload = {
            "apiName": self.api_name,
            "environment": environment,
            "kid": self.kid,
            "proxygenSecretName": self.private_key_arn,
        }
        payload.update(extra)
        return payload

    def invoke(self, function_name: str, payload: Dict[str, Any]) -> str:
        """
        Invoke a Lambda function synchronously.

        Returns:
            str: Response payload

        Raises:
            LambdaInvocationError: If the function reported an error
            ClientError: If the invocation was rejected
        """
        response = self.client.invoke(
            FunctionName=function_name,
            Payload=json.dumps(payload).encode("utf-8"),
        )
        body = response["Payload"].read().decode("utf-8")
        if response.get("FunctionError"):
            raise LambdaInvocationError(f"Error calling lambda {function_name}: {body}")
        logger.debug(f"Lambda {function_name} invoked successfully. Response: {body}")
        return body

    def list_instances(self, environment: str) -> List[str]:
        """
        List instance names deployed on an Apigee environment.

        Raises:
            EnumerationError: If the instances could not be listed
        """
        logger.info(f"Checking Apigee deployments of {self.api_name} on {environment}")
        try:
            body = self.invoke(INSTANCE_GET_FUNCTION, self._payload(environment))
            instances = json.loads(body)
        except (ClientError, BotoCoreError, LambdaInvocationError, ValueError) as e:
            raise EnumerationError(f"Failed to list proxygen instances on {environment}: {e}") from e

        if not isinstance(instances, list):
            raise EnumerationError(f"Unexpected proxygen instance listing on {environment}: {body}")

        names = [i["name"] for i in instances if isinstance(i, dict) and i.get("name")]
        logger.info(f"Found {len(names)} proxygen instances on {environment}")
        return names

    def delete(self, environment: str, instance: str) -> None:
        """
        Delete one instance.

        Raises:
            LambdaInvocationError: If the delete function reported an error
            ClientError: If the invocation was rejected
        """
        self.invoke(INSTANCE_DELETE_FUNCTION, self._payload(environment, instance=instance))
        logger.info(f"Deleted proxygen instance {instance} on {environment}")
