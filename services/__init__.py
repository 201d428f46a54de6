"""
Services module for Creative Studio API.
"""
from .orchestrator import GenerationService, GenerationStage, build_generation_service
from .prompt_enhancer import PromptEnhancer

__all__ = ["GenerationService", "GenerationStage", "build_generation_service", "PromptEnhancer"]
