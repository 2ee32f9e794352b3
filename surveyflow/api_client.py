"""
Survey API clients used by the session machine.

Two interchangeable implementations:
- SurveyApiClient: talks to the Flask service over HTTP (requests)
- InProcessSurveyClient: calls a SurveyService directly (console, tests)

Both expose the same methods and raise only SurveyError subclasses:
SurveyNotFound for unknown ids, TransportFailure for everything that
went wrong on the way.
"""

import logging
from typing import List, Optional, Sequence, Tuple

import requests

from surveyflow.contracts import (
    AnsweredQuestion,
    ChatTurn,
    Question,
    SurveyListing,
    SurveyRecord,
    SurveySummary,
    answers_to_json,
)
from surveyflow.errors import SurveyError, SurveyNotFound, TransportFailure

logger = logging.getLogger(__name__)


def _decode(build):
    """Run a payload decoder, reporting shape errors as TransportFailure"""
    try:
        return build()
    except (ValueError, KeyError, TypeError, AttributeError) as e:
        raise TransportFailure(f"Unexpected response from survey service: {e}") from e


class SurveyApiClient:
    """HTTP client for the survey service"""

    def __init__(self, base_url: str, session: Optional[requests.Session] = None,
                 timeout: Optional[float] = None):
        """
        Args:
            base_url: API root, e.g. 'http://localhost:5000/api'
            session: Optional requests.Session (connection reuse, testing)
            timeout: Per-request timeout in seconds (None waits indefinitely)
        """
        self.base_url = base_url.rstrip('/')
        self.http = session or requests.Session()
        self.timeout = timeout
        logger.info(f"SurveyApiClient targeting {self.base_url}")

    def generate_questions(
        self,
        topic: str,
        survey_id: Optional[str],
        answers: Sequence[AnsweredQuestion]
    ) -> Tuple[str, Tuple[Question, ...]]:
        body = {'topic': topic, 'answers': answers_to_json(answers)}
        if survey_id:
            body['surveyId'] = survey_id
        data = self._request('POST', '/survay', json=body)
        return _decode(lambda: (
            str(data['surveyId']),
            tuple(Question.from_json(q) for q in data.get('questions') or []),
        ))

    def submit_survey(self, survey_id: str, answers: Sequence[AnsweredQuestion]) -> SurveySummary:
        data = self._request('POST', '/submit-survay', json={
            'surveyId': survey_id,
            'answers': answers_to_json(answers),
        })
        return _decode(lambda: SurveySummary.from_json(data))

    def chat(self, survey_id: str, message: str, history: Sequence[ChatTurn]) -> str:
        data = self._request('POST', '/survay-chat', json={
            'surveyId': survey_id,
            'message': message,
            'history': [{'role': t.role, 'content': t.content} for t in history],
        })
        return _decode(lambda: str(data.get('reply', '')))

    def get_survey(self, survey_id: str) -> SurveyRecord:
        data = self._request('GET', f'/survay/{survey_id}')
        return _decode(lambda: SurveyRecord.from_json(data))

    def list_surveys(self) -> List[SurveyListing]:
        data = self._request('GET', '/surveys')
        return _decode(lambda: [SurveyListing.from_json(s) for s in data.get('surveys') or []])

    def get_report(self, survey_id: str) -> Tuple[str, str]:
        data = self._request('POST', '/survay-report', json={'surveyId': survey_id})
        return _decode(lambda: (str(data['filename']), str(data['content'])))

    def agent_chat(self, prompt: str) -> dict:
        """One turn of the free-form agent chat; returns {messages, message, usage}"""
        data = self._request('POST', '/agents/chat', json={'prompt': prompt})
        return _decode(lambda: {
            'messages': list(data['messages']),
            'message': {
                'role': str(data['message']['role']),
                'content': str(data['message'].get('content') or ''),
            },
            'usage': data.get('usage'),
        })

    def clear_agent_session(self) -> bool:
        data = self._request('POST', '/agents/clearSession', json={})
        return _decode(lambda: bool(data['success']))

    def _request(self, method: str, path: str, **kwargs) -> dict:
        url = f"{self.base_url}{path}"
        try:
            response = self.http.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"{method} {url} failed: {e}")
            raise TransportFailure(f"Could not reach survey service: {e}") from e

        if response.status_code == 404 and path.startswith('/survay/'):
            raise SurveyNotFound(path.rsplit('/', 1)[-1])

        if not response.ok:
            logger.error(f"{method} {url} returned {response.status_code}")
            raise TransportFailure(
                f"Server error: {response.status_code}", status_code=response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise TransportFailure(f"Invalid JSON from {url}") from e


class InProcessSurveyClient:
    """
    Same interface as SurveyApiClient, backed by a SurveyService.

    Non-domain exceptions from the service (model failures, I/O errors)
    are reported as TransportFailure, the way the HTTP API turns them
    into 500 responses.
    """

    def __init__(self, service):
        self.service = service

    def generate_questions(self, topic, survey_id, answers):
        return self._call('generate_questions', topic, survey_id, answers)

    def submit_survey(self, survey_id, answers):
        return self._call('submit_survey', survey_id, answers)

    def chat(self, survey_id, message, history):
        return self._call('chat', survey_id, message, history)

    def get_survey(self, survey_id):
        return self._call('get_survey', survey_id)

    def list_surveys(self):
        return self._call('list_surveys')

    def get_report(self, survey_id):
        return self._call('build_report', survey_id)

    def agent_chat(self, prompt):
        return self._call('agent_chat_turn', prompt)

    def clear_agent_session(self):
        return self._call('clear_agent_session')

    def _call(self, method, *args):
        try:
            return getattr(self.service, method)(*args)
        except SurveyError:
            raise
        except Exception as e:
            logger.exception(f"{method} failed")
            raise TransportFailure(str(e)) from e
