"""
notifications.py — Quiz-completion notification function
========================================================
Invoked (fire-and-forget) by the quiz engine after a submission.  On a
passing event it publishes a human-readable message to a fixed topic so
managers hear about completions; failing events publish nothing.

  event    {employeeId, courseId, score, passed}
  returns  {"status": "success"}    — or raises the publisher's error

Topics
------
  SnsTopic       boto3 ``sns.publish`` to a configured topic ARN (live mode)
  LoggingTopic   keeps published messages in memory and logs them (local mode)
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

logger = logging.getLogger(__name__)


class QuizCompletionEvent(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    employee_id:  Optional[str] = None
    course_id:    str
    score:        int
    passed:       bool

    def message(self) -> str:
        return f"Employee {self.employee_id} completed course {self.course_id} with score {self.score}"


class Topic:
    def publish(self, message: str, subject: Optional[str] = None) -> None:
        raise NotImplementedError


class LoggingTopic(Topic):
    def __init__(self, name: str = "quiz-completions"):
        self.name = name
        self.messages: list[str] = []

    def publish(self, message, subject=None):
        self.messages.append(message)
        logger.info("[%s] %s", self.name, message)


class SnsTopic(Topic):
    def __init__(self, topic_arn: str, region: str, client: Any = None):
        import boto3

        self.topic_arn = topic_arn
        self._sns = client or boto3.client("sns", region_name=region)

    def publish(self, message, subject=None):
        kwargs = {"TopicArn": self.topic_arn, "Message": message}
        if subject:
            kwargs["Subject"] = subject
        self._sns.publish(**kwargs)


class QuizCompletionNotifier:
    """The notification function: publish on pass, always report success."""

    def __init__(self, topic: Topic):
        self.topic = topic

    def handle(self, event: "QuizCompletionEvent | dict") -> dict:
        if isinstance(event, dict):
            event = QuizCompletionEvent.model_validate(event)
        try:
            if event.passed:
                self.topic.publish(event.message(), subject="Training completed")
        except Exception as exc:
            logger.error("Error publishing completion message: %s", exc)
            raise
        return {"status": "success"}
