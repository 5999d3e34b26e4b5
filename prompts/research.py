"""
prompts/research.py — Task prompt handed to the research agent for one case.

Only the hypothesis and context go in. The known answer never does.
"""

RESEARCH_TASK_PROMPT = """\
Research the following hypothesis and write up what you find.

HYPOTHESIS: {hypothesis}

CONTEXT:
{context}

Investigate whether the hypothesis holds. Cite the concrete evidence you
find and name the specific mechanisms, components and terms involved.

Write your final research document as a Markdown file inside the
`{output_dir}/` directory of the current working directory."""
