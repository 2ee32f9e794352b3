"""
Flask Web Application for the Survey Flow

JSON API in front of SurveyService. Route names follow the existing
browser client ('survay' spelling kept for compatibility).
"""

from flask import Flask, request, jsonify
import logging
from werkzeug.exceptions import HTTPException

from surveyflow import config
from surveyflow.contracts import ChatTurn, answers_from_json
from surveyflow.core.agent_chat import DEFAULT_AGENT, AgentChat, AgentProfile
from surveyflow.core.chat_responder import ChatResponder
from surveyflow.core.question_generator import QuestionGenerator
from surveyflow.core.summary_generator import SummaryGenerator
from surveyflow.core.survey_service import DEFAULT_AGENT_SESSION, SurveyService
from surveyflow.errors import SurveyNotFound
from surveyflow.persistence import SurveyStore

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


class InvalidRequest(ValueError):
    pass


def _body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise InvalidRequest("Request body must be a JSON object")
    return data


def _required_text(data, key):
    value = data.get(key)
    if not isinstance(value, str) or not value.strip():
        raise InvalidRequest(f"'{key}' is required")
    return value.strip()


def _answers(data):
    try:
        return answers_from_json(data.get('answers'))
    except ValueError as e:
        raise InvalidRequest(f"Invalid answers: {e}") from e


def _history(items):
    if items is None:
        return []
    if not isinstance(items, list):
        raise InvalidRequest("'history' must be a list")
    try:
        return [ChatTurn.from_json(item) for item in items]
    except ValueError as e:
        raise InvalidRequest(f"Invalid history: {e}") from e


def _session_key(data):
    key = data.get('sessionId') or DEFAULT_AGENT_SESSION
    if not isinstance(key, str):
        raise InvalidRequest("'sessionId' must be a string")
    return key


def _error(message, status):
    return jsonify({'success': False, 'error': message}), status


def build_service(model_client=None):
    """
    Wire store + model collaborators from config.

    Args:
        model_client: Loaded model client (HuggingFaceClient is loaded if None)
    """
    if model_client is None:
        from surveyflow.utils.hf_client import HuggingFaceClient

        logger.info("Initializing HuggingFace model (this takes a while)...")
        model_client = HuggingFaceClient(
            model_name=config.MODEL_NAME,
            load_in_4bit=config.LOAD_IN_4BIT,
            device=config.DEVICE,
            max_new_tokens=config.MAX_NEW_TOKENS,
        )
        logger.info(f"Model loaded: {model_client.get_model_info()}")

    store = SurveyStore(data_dir=config.DATA_DIR, filename=config.DATA_FILENAME)
    return SurveyService(
        store=store,
        question_generator=QuestionGenerator(model_client, max_tokens=config.MAX_NEW_TOKENS),
        summary_generator=SummaryGenerator(model_client, max_tokens=config.MAX_NEW_TOKENS),
        chat_responder=ChatResponder(model_client),
        agent_chat=AgentChat(model_client, agents={
            DEFAULT_AGENT: AgentProfile(DEFAULT_AGENT, config.AGENT_SYSTEM_PROMPT),
        }),
    )


def create_app(service):
    """
    Build the Flask app around a SurveyService.

    Args:
        service: SurveyService (or any object with the same methods)
    """
    app = Flask(__name__)

    @app.errorhandler(InvalidRequest)
    def handle_bad_request(e):
        return _error(str(e), 400)

    @app.errorhandler(SurveyNotFound)
    def handle_not_found(e):
        return _error(str(e), 404)

    @app.errorhandler(Exception)
    def handle_unexpected(e):
        if isinstance(e, HTTPException):
            return e
        logger.exception(f"Error handling {request.method} {request.path}")
        return _error(str(e), 500)

    @app.route('/api/survay', methods=['POST'])
    def generate_questions():
        """Create-or-continue a survey and return the next question batch"""
        data = _body()
        topic = (data.get('topic') or '').strip()
        survey_id = data.get('surveyId') or None
        if not topic and not survey_id:
            raise InvalidRequest("'topic' is required")

        survey_id, questions = service.generate_questions(
            topic, survey_id, _answers(data)
        )
        return jsonify({
            'surveyId': survey_id,
            'questions': [q.to_json() for q in questions],
        })

    @app.route('/api/submit-survay', methods=['POST'])
    def submit_survey():
        """Persist final answers and summarize"""
        data = _body()
        survey_id = _required_text(data, 'surveyId')
        summary = service.submit_survey(survey_id, _answers(data))
        return jsonify({'surveyId': survey_id, **summary.to_json()})

    @app.route('/api/survay-chat', methods=['POST'])
    def chat():
        """One chat turn about a summarized survey"""
        data = _body()
        survey_id = _required_text(data, 'surveyId')
        message = _required_text(data, 'message')
        reply = service.chat(survey_id, message, _history(data.get('history')))
        return jsonify({'surveyId': survey_id, 'reply': reply})

    @app.route('/api/survay/<survey_id>', methods=['GET'])
    def get_survey(survey_id):
        return jsonify(service.get_survey(survey_id).to_json())

    @app.route('/api/surveys', methods=['GET'])
    def list_surveys():
        return jsonify({'surveys': [s.to_json() for s in service.list_surveys()]})

    @app.route('/api/survay-report', methods=['POST'])
    def survey_report():
        """Plain-text report for download"""
        data = _body()
        survey_id = _required_text(data, 'surveyId')
        filename, content = service.build_report(survey_id)
        return jsonify({'surveyId': survey_id, 'filename': filename, 'content': content})

    @app.route('/api/agents/chat', methods=['POST'])
    def agent_chat():
        """Free-form chat; context persists per sessionId until cleared"""
        data = _body()
        prompt = _required_text(data, 'prompt')
        return jsonify(service.agent_chat_turn(prompt, _session_key(data)))

    @app.route('/api/agents/clearSession', methods=['POST'])
    def clear_agent_session():
        data = request.get_json(silent=True) or {}
        if not isinstance(data, dict):
            raise InvalidRequest("Request body must be a JSON object")
        return jsonify({'success': service.clear_agent_session(_session_key(data))})

    @app.route('/api/health', methods=['GET'])
    def health():
        return jsonify({'status': 'ok', 'surveys': service.count()})

    return app


if __name__ == '__main__':
    app = create_app(build_service())

    # Start Flask server
    print("\n" + "="*60)
    print("SURVEY FLOW - API SERVER")
    print("="*60)
    print(f"\nServing on http://{config.HOST}:{config.PORT}/api")
    print("\nPress Ctrl+C to stop the server")
    print("="*60 + "\n")

    app.run(host=config.HOST, port=config.PORT, debug=False)
