"""Request bodies accepted by the relay endpoints."""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


# Claude Messages
class ThinkingParameter(BaseModel):
    type: str = Field(default="enabled")
    budget_tokens: Optional[int] = None


class AnthropicMessageRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[Dict[str, Any]]
    max_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop_sequences: Optional[List[str]] = None
    system: Optional[Any] = None  # Can be string or list of text blocks
    stream: Optional[bool] = False
    thinking: Optional[ThinkingParameter] = None
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None


# OpenAI Chat Completions
class OpenAIChatCompletionRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    model: str
    messages: List[Dict[str, Any]]
    max_tokens: Optional[int] = None
    max_completion_tokens: Optional[int] = None
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stop: Optional[Any] = None  # Can be string or list
    stream: Optional[bool] = False
    tools: Optional[List[Dict[str, Any]]] = None
    tool_choice: Optional[Any] = None  # Can be string or dict
    functions: Optional[List[Dict[str, Any]]] = None  # Legacy
    function_call: Optional[Any] = None  # Legacy
    reasoning_effort: Optional[str] = None  # "low", "medium", "high" - maps to thinking budget
    thinking_budget: Optional[int] = None


# Gemini generateContent
class GeminiGenerateContentRequest(BaseModel):
    model_config = ConfigDict(extra="allow")

    contents: List[Dict[str, Any]]
    systemInstruction: Optional[Dict[str, Any]] = None
    generationConfig: Optional[Dict[str, Any]] = None
    tools: Optional[List[Dict[str, Any]]] = None
    toolConfig: Optional[Dict[str, Any]] = None
