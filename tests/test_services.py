"""
Service Tests (model client, PDF export)
"""
import base64
from types import SimpleNamespace

import pytest

from medportal.services import ai_service, pdf_service
from medportal.services.ai_service import AIServiceError


class FakeCompletions:
    def __init__(self, content=None, error=None):
        self.content = content
        self.error = error
        self.kwargs = None

    def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        message = SimpleNamespace(content=self.content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


@pytest.fixture
def fake_openai(monkeypatch, app):
    """Swap the SDK class for a fake and give the app an API key."""
    completions = FakeCompletions(content='  model says hi  ')
    created = {}

    def factory(**kwargs):
        created.update(kwargs)
        return SimpleNamespace(chat=SimpleNamespace(completions=completions))

    monkeypatch.setattr(ai_service, 'OpenAI', factory)
    monkeypatch.setitem(app.config, 'OPENAI_API_KEY', 'sk-test')
    monkeypatch.setitem(app.config, 'OPENAI_MODEL', 'gpt-test')
    completions.client_kwargs = created
    return completions


class TestAIService:
    """OpenAI wrapper"""

    def test_missing_key(self, app):
        with app.app_context():
            ok, msg = ai_service.client_ready()
            assert ok is False
            assert 'OPENAI_API_KEY' in msg
            with pytest.raises(AIServiceError):
                ai_service.generate_text('hello')

    def test_text_prompt(self, app, fake_openai):
        with app.app_context():
            assert ai_service.generate_text('hello') == 'model says hi'

        assert fake_openai.kwargs['model'] == 'gpt-test'
        assert fake_openai.kwargs['messages'] == [{'role': 'user', 'content': 'hello'}]
        assert fake_openai.client_kwargs['api_key'] == 'sk-test'
        assert fake_openai.client_kwargs['max_retries'] == 0

    def test_image_prompt(self, app, fake_openai):
        with app.app_context():
            ai_service.generate_text('describe', image_bytes=b'abc', mime_type='image/jpeg')

        content = fake_openai.kwargs['messages'][0]['content']
        assert content[0] == {'type': 'text', 'text': 'describe'}
        assert content[1]['image_url']['url'] == 'data:image/jpeg;base64,' + base64.b64encode(b'abc').decode()

    def test_sdk_error_wrapped(self, app, fake_openai):
        fake_openai.error = RuntimeError('rate limited')
        with app.app_context():
            with pytest.raises(AIServiceError) as exc:
                ai_service.generate_text('hello')
        assert 'rate limited' in str(exc.value)

    def test_empty_output(self, app, fake_openai):
        fake_openai.content = '   '
        with app.app_context():
            with pytest.raises(AIServiceError):
                ai_service.generate_text('hello')

    def test_analysis_prompt_lists_allowlist(self):
        prompt = ai_service.analysis_prompt()
        assert 'brain tumor' in prompt
        assert '"potential_conditions"' in prompt

    def test_recommendation_prompt_embeds_history(self):
        prompt = ai_service.recommendation_prompt([{'diagnosis': 'Mild cardiomegaly'}])
        assert 'Mild cardiomegaly' in prompt
        assert 'Possible Future Conditions' in prompt
        assert 'Preventive Measures' in prompt


class TestPDFService:
    """Analysis report export"""

    ANALYSIS = {
        'id': 7,
        'owner_email': 'jane.doe@example.com',
        'created_at': '2026-10-19T08:30:00+00:00',
        'diagnosis': 'Findings <suggestive> of pneumonia & effusion',
        'observations': ['Right basal opacity'],
        'potential_conditions': ['pneumonia'],
        'areas_of_concern': [],
        'image_data': base64.b64encode(b'not an image').decode(),
    }

    def test_filename(self):
        assert pdf_service.report_filename(self.ANALYSIS) == 'MedPortal_jane_doe_20261019_analysis_7.pdf'

    def test_export(self):
        pdf = pdf_service.export_analysis_pdf(self.ANALYSIS)
        assert pdf.startswith(b'%PDF')

    def test_export_without_image(self):
        pdf = pdf_service.export_analysis_pdf(self.ANALYSIS, include_image=False)
        assert pdf.startswith(b'%PDF')

    def test_escape(self):
        assert pdf_service.esc('a < b & c') == 'a &lt; b &amp; c'
