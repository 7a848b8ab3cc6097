from typing import Any, Optional

import httpx


class ApiError(Exception):
    def __init__(self, status_code: int, detail: Any):
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"{status_code}: {detail}")


class ExamApiClient:
    """Thin async client for the exam session endpoints."""

    def __init__(self, base_url: str = "http://localhost:8000", token: Optional[str] = None,
                 client: Optional[httpx.AsyncClient] = None, prefix: str = "/api"):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = client or httpx.AsyncClient(base_url=base_url, headers=headers, timeout=10.0)
        self._prefix = prefix

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        resp = await self._client.request(method, f"{self._prefix}{path}", **kwargs)
        if resp.status_code >= 400:
            try:
                body = resp.json()
            except ValueError:
                body = resp.text
            detail = body.get("detail", body) if isinstance(body, dict) else body
            raise ApiError(resp.status_code, detail)
        return resp.json()

    async def start(self, exam_id: int) -> dict:
        return await self._request("POST", f"/exams/{exam_id}/sessions")

    async def get_active(self, session_id: int) -> dict:
        return await self._request("GET", f"/sessions/{session_id}")

    async def save_response(self, session_id: int, question_id: int, response_text: Optional[str] = None,
                            selected_option_id: Optional[int] = None) -> dict:
        payload = {
            "question_id": question_id,
            "response_text": response_text,
            "selected_option_id": selected_option_id,
        }
        return await self._request("PUT", f"/sessions/{session_id}/responses", json=payload)

    async def submit(self, session_id: int) -> dict:
        return await self._request("POST", f"/sessions/{session_id}/submit")

    async def history(self) -> list:
        return await self._request("GET", "/sessions/history")

    async def aclose(self) -> None:
        await self._client.aclose()
