import json
import unittest

from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import mathtutor.models  # noqa: F401
from mathtutor.main import app
from mathtutor.db.base import Base
from mathtutor.db.sessions import get_db
from mathtutor.services.llm_service import Completion, get_llm_service


def chat_reply(quickrep="4 * 9 = 36", explication="1. Make 4 groups of 9 apples.\n2. Count them all: 36."):
    payload = json.dumps({"quickrep": quickrep, "explication": explication})
    return f"```json\n{payload}\n```"


def quiz_reply(questions=None):
    if questions is None:
        questions = [
            {"question": "Combien font 5 + 3 ?", "answer": "8", "explanation": "5, 6, 7, 8."},
            {"question": "Combien font 10 - 4 ?", "answer": "6", "explanation": "10, 9, 8, 7, 6."},
            {"question": "Combien font 2 * 3 ?", "answer": "6", "explanation": "2 + 2 + 2 = 6."},
        ]
    return json.dumps({"questions": questions})


class FakeLLM:
    """Scripted stand-in for LLMService."""

    def __init__(self):
        self.replies = []
        self.calls = []

    def queue(self, *replies):
        self.replies.extend(replies)

    def tutor_reply(self, messages):
        self.calls.append(("tutor", messages))
        return self._next()

    def quiz_questions(self, history, num_questions=None):
        self.calls.append(("quiz", history))
        return self._next()

    def _next(self):
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return Completion(content=reply, finish_reason="stop")


class ApiTestCase(unittest.TestCase):
    """Runs the real app against an in-memory SQLite database."""

    def setUp(self):
        self.engine = create_engine(
            "sqlite://",
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
        Base.metadata.create_all(bind=self.engine)
        self.Session = sessionmaker(autocommit=False, autoflush=False, bind=self.engine)

        def override_get_db():
            db = self.Session()
            try:
                yield db
            finally:
                db.close()

        self.llm = FakeLLM()
        app.dependency_overrides[get_db] = override_get_db
        app.dependency_overrides[get_llm_service] = lambda: self.llm
        self.client = TestClient(app)

    def tearDown(self):
        app.dependency_overrides.clear()
        Base.metadata.drop_all(bind=self.engine)
        self.engine.dispose()

    def register(self, email="a@b.com", password="secret1", name="A"):
        response = self.client.post(
            "/api/auth/register",
            json={"email": email, "password": password, "name": name},
        )
        self.assertEqual(response.status_code, 201, response.text)
        return response.json()["token"]

    def auth(self, token):
        return {"Authorization": f"Bearer {token}"}

    def send(self, token, content="Combien font 4 * 9 ?", chat_id=None, reply=None):
        self.llm.queue(reply if reply is not None else chat_reply())
        body = {"messages": [{"role": "user", "content": content}]}
        if chat_id:
            body["chatId"] = chat_id
        return self.client.post("/api/chat", json=body, headers=self.auth(token))
