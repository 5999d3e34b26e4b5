"""
prompts/ — All LLM prompt templates for the evaluation harness.

One file per component. Import the prompt constant you need:

    from prompts.judge import JUDGE_SYSTEM_PROMPT, JUDGE_REQUEST_PROMPT
    from prompts.research import RESEARCH_TASK_PROMPT
"""
