from .pipeline import ConversionDraft, ConversionPipeline

__all__ = ["ConversionDraft", "ConversionPipeline"]
