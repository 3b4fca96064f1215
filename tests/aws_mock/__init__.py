"""AWS API mocks for integration testing.

In-memory stand-ins for the boto3 ``elbv2`` and ``ec2`` clients. They accept
the same keyword arguments and return the same response shapes as the real
clients, so the production wrappers run unchanged on top of them.

Usage:
    from aws_mock import MockElbv2Client, RecordingEventSink

    elbv2 = MockElbv2Client()
    elbv2.add_rule(LISTENER_ARN, priority=5, path="/old", target_group_arn=TG1)
    client = Elbv2RuleClient(elbv2)

    elbv2.fail_operation("CreateRule", code="TooManyRules")
"""

from .ec2 import MockEc2Client
from .elbv2 import LISTENER_ARN, TG1_ARN, TG2_ARN, MockElbv2Client, MockRule, client_error
from .events import RecordedEvent, RecordingEventSink

__all__ = [
    "LISTENER_ARN",
    "TG1_ARN",
    "TG2_ARN",
    "MockEc2Client",
    "MockElbv2Client",
    "MockRule",
    "RecordedEvent",
    "RecordingEventSink",
    "client_error",
]
