"""Deterministic file contents used when live generation fails."""

from __future__ import annotations

import json
from pathlib import PurePosixPath

from agent_gateway.pipeline.models import InstructionAnalysis

LANGUAGE_BY_EXTENSION = {
    ".html": "html",
    ".htm": "html",
    ".css": "css",
    ".js": "javascript",
    ".jsx": "javascript",
    ".mjs": "javascript",
    ".ts": "typescript",
    ".tsx": "typescript",
    ".json": "json",
    ".md": "markdown",
    ".py": "python",
}

PROJECT_TITLES = {
    "ecommerce": "Online Store",
    "blog": "Blog",
    "dashboard": "Dashboard",
    "landing": "Landing Page",
    "portfolio": "Portfolio",
    "webapp": "Web Application",
}


def language_for(path: str) -> str:
    return LANGUAGE_BY_EXTENSION.get(PurePosixPath(path).suffix.lower(), "plaintext")


def project_title(analysis: InstructionAnalysis) -> str:
    return PROJECT_TITLES.get(analysis.project_type, analysis.project_type.replace("-", " ").title())


def fallback_content(path: str, analysis: InstructionAnalysis, description: str = "") -> str:
    suffix = PurePosixPath(path).suffix.lower()
    title = project_title(analysis)
    if suffix in (".html", ".htm"):
        return _html(title, analysis)
    if suffix == ".css":
        return _css(analysis)
    if suffix in (".js", ".jsx", ".mjs"):
        return _javascript(path, title)
    if suffix in (".ts", ".tsx"):
        return _typescript(path, title)
    if suffix == ".json":
        return _json(path, analysis)
    return f"// {path}\n// {description or title}\n// Generated placeholder; edit to complete.\n"


def _html(title: str, analysis: InstructionAnalysis) -> str:
    features = "\n".join(
        f"        <li>{requirement}</li>" for requirement in analysis.functional_requirements
    ) or "        <li>Responsive layout</li>"
    return f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{title}</title>
    <link rel="stylesheet" href="styles.css">
</head>
<body>
    <header class="site-header">
        <h1>{title}</h1>
    </header>
    <main class="content">
        <section class="hero">
            <h2>Welcome</h2>
            <p>This {analysis.style} {title.lower()} is ready to customize.</p>
        </section>
        <ul class="features">
{features}
        </ul>
    </main>
    <footer class="site-footer">
        <p>&copy; {title}</p>
    </footer>
    <script src="script.js"></script>
</body>
</html>
"""


def _css(analysis: InstructionAnalysis) -> str:
    if analysis.color_scheme == "dark":
        background, foreground, accent = "#0f172a", "#e2e8f0", "#38bdf8"
    else:
        background, foreground, accent = "#ffffff", "#1f2937", "#2563eb"
    return f""":root {{
    --background: {background};
    --foreground: {foreground};
    --accent: {accent};
}}

* {{
    box-sizing: border-box;
    margin: 0;
    padding: 0;
}}

body {{
    font-family: system-ui, -apple-system, sans-serif;
    background: var(--background);
    color: var(--foreground);
    line-height: 1.6;
}}

.site-header,
.site-footer {{
    padding: 1.5rem 2rem;
}}

.content {{
    max-width: 960px;
    margin: 0 auto;
    padding: 2rem;
}}

.hero h2 {{
    color: var(--accent);
    font-size: 2rem;
}}

@media (max-width: 640px) {{
    .content {{
        padding: 1rem;
    }}
}}
"""


def _javascript(path: str, title: str) -> str:
    if path.endswith(".jsx"):
        component = PurePosixPath(path).stem
        return f"""export default function {component}() {{
  return (
    <div className="{component.lower()}">
      <h1>{title}</h1>
    </div>
  );
}}
"""
    return f"""document.addEventListener('DOMContentLoaded', () => {{
  console.log('{title} loaded');
}});
"""


def _typescript(path: str, title: str) -> str:
    if path.endswith(".tsx"):
        component = PurePosixPath(path).stem
        return f"""export default function {component}(): JSX.Element {{
  return (
    <div className="{component.lower()}">
      <h1>{title}</h1>
    </div>
  );
}}
"""
    return f"""export const appTitle: string = '{title}';

export function init(): void {{
  console.log(`${{appTitle}} initialized`);
}}
"""


def _json(path: str, analysis: InstructionAnalysis) -> str:
    if PurePosixPath(path).name == "package.json":
        manifest = {
            "name": analysis.project_type.replace(" ", "-").lower() or "app",
            "version": "0.1.0",
            "private": True,
            "scripts": {"dev": "vite", "build": "vite build", "preview": "vite preview"},
            "dependencies": {"react": "^18.2.0", "react-dom": "^18.2.0"},
            "devDependencies": {"vite": "^5.0.0"},
        }
        return json.dumps(manifest, indent=2) + "\n"
    return "{}\n"
