"""Document-to-quiz generation pipeline

Modules (leaf-first):
- models: drafts and token usage
- documents: source documents handed in by the caller
- prompts / parts: request construction
- planner: size-bounded batching
- extractor: JSON recovery from model output
- model: generative model adapter (Gemini)
- client: single generation call with retry and routing modes
- assembler: validation and merge of batch results
- pool / orchestrator: concurrent fan-out and fan-in
"""
