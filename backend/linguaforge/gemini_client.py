from __future__ import annotations
import logging
import time
import httpx
from typing import Any, Dict, Optional
from .errors import GenerationError
from .settings import settings

logger = logging.getLogger(__name__)


class GeminiClient:
	"""Single-attempt chat completion over the configured provider.

	No retry and no provider fallback: a failed call surfaces to the caller
	as ``GenerationError``.
	"""

	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		base_url: Optional[str] = None,
		model: Optional[str] = None,
		provider: Optional[str] = None,
		timeout: Optional[float] = None,
	) -> None:
		self.provider = provider or settings.gemini_provider
		if self.provider == "openrouter":
			self.api_key = api_key or settings.openrouter_api_key
			if not self.api_key:
				raise GenerationError("OPENROUTER_API_KEY is not configured")
			self.model = model or settings.openrouter_model
			self.base_url = base_url or settings.openrouter_base_url
		else:
			self.api_key = api_key or settings.gemini_api_key
			if not self.api_key:
				raise GenerationError("GEMINI_API_KEY is not configured")
			self.model = model or settings.gemini_model
			if self.provider == "vertex":
				region = settings.vertex_region
				project = settings.vertex_project or "placeholder-project"
				# Vertex AI Generative REST endpoint (API key via header)
				self.base_url = base_url or (
					f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models/{self.model}:generateContent"
				)
			else:
				# Google AI Studio (Generative Language API)
				self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
		self._client = httpx.AsyncClient(timeout=timeout or settings.llm_timeout_seconds)

	async def complete(
		self,
		system_prompt: str,
		user_prompt: str,
		*,
		temperature: float = 0.7,
		max_tokens: int = 900,
		json_mode: bool = False,
	) -> str:
		if self.provider == "openrouter":
			request = self._openrouter_request(system_prompt, user_prompt, temperature, max_tokens, json_mode)
		else:
			request = self._gemini_request(system_prompt, user_prompt, temperature, max_tokens, json_mode)
		logger.info("LLM call -> %s (model: %s)", self.provider, self.model)
		started = time.perf_counter()
		try:
			r = await self._client.post(self.base_url, **request)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.warning("LLM call failed with HTTP %s: %s", http_err.response.status_code, http_err.response.text[:200])
			raise GenerationError(f"LLM request failed with status {http_err.response.status_code}") from http_err
		except httpx.RequestError as net_err:
			logger.warning("LLM transport error: %s", net_err)
			raise GenerationError(f"LLM request failed: {net_err}") from net_err
		try:
			data = r.json()
			if self.provider == "openrouter":
				text = data["choices"][0]["message"]["content"]
			else:
				text = data["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError) as err:
			raise GenerationError(f"Unexpected LLM response: {r.text[:200]}") from err
		logger.info("LLM response <- %s (%.0fms)", self.provider, (time.perf_counter() - started) * 1000)
		return text or ""

	def _gemini_request(
		self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int, json_mode: bool
	) -> Dict[str, Any]:
		generation_config: Dict[str, Any] = {"temperature": temperature, "maxOutputTokens": max_tokens}
		if json_mode:
			generation_config["responseMimeType"] = "application/json"
		payload: Dict[str, Any] = {
			"systemInstruction": {"parts": [{"text": system_prompt}]},
			"contents": [{"role": "user", "parts": [{"text": user_prompt}]}],
			"generationConfig": generation_config,
		}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self.provider == "vertex":
			headers["x-goog-api-key"] = self.api_key
		else:
			params["key"] = self.api_key
		return {"params": params, "headers": headers, "json": payload}

	def _openrouter_request(
		self, system_prompt: str, user_prompt: str, temperature: float, max_tokens: int, json_mode: bool
	) -> Dict[str, Any]:
		headers = {
			"Authorization": f"Bearer {self.api_key}",
			"Content-Type": "application/json",
			"HTTP-Referer": settings.openrouter_referer,
			"X-Title": settings.openrouter_title,
		}
		payload: Dict[str, Any] = {
			"model": self.model,
			"messages": [
				{"role": "system", "content": system_prompt},
				{"role": "user", "content": user_prompt},
			],
			"temperature": temperature,
			"max_tokens": max_tokens,
		}
		if json_mode:
			payload["response_format"] = {"type": "json_object"}
		return {"headers": headers, "json": payload}

	async def aclose(self) -> None:
		await self._client.aclose()
