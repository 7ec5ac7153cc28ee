"""Built-in technology stacks and project templates."""

from __future__ import annotations

from collections.abc import Iterable

from agent_gateway.pipeline.models import (
    InstructionAnalysis,
    PlanComplexity,
    PlannedFile,
    TechnologyStack,
    TemplateOption,
    TemplateTier,
)

TIER_ORDER: tuple[TemplateTier, ...] = ("beginner", "intermediate", "advanced")

TIER_TO_PLAN_COMPLEXITY: dict[TemplateTier, PlanComplexity] = {
    "beginner": "simple",
    "intermediate": "moderate",
    "advanced": "complex",
}

GENERIC_TEMPLATE_ID = "webapp-starter"


def _files(*entries: tuple[str, str]) -> list[PlannedFile]:
    return [PlannedFile(path=path, description=description) for path, description in entries]


BUILTIN_STACKS: tuple[TechnologyStack, ...] = (
    TechnologyStack(
        id="html-css-js",
        name="HTML, CSS and JavaScript",
        description="Static site without a build step",
        technologies=["HTML5", "CSS3", "JavaScript"],
    ),
    TechnologyStack(
        id="react-vite",
        name="React + Vite",
        description="Single-page application with a fast dev server",
        technologies=["React", "Vite", "TypeScript"],
    ),
    TechnologyStack(
        id="mern-stack",
        name="MERN",
        description="MongoDB, Express, React and Node.js",
        technologies=["MongoDB", "Express", "React", "Node.js"],
    ),
    TechnologyStack(
        id="jamstack",
        name="JAMstack",
        description="Prebuilt markup served from a CDN",
        technologies=["JavaScript", "Markdown", "Static hosting"],
    ),
    TechnologyStack(
        id="sveltekit",
        name="SvelteKit",
        description="Compiled components with file-based routing",
        technologies=["Svelte", "SvelteKit", "TypeScript"],
    ),
)

BUILTIN_TEMPLATES: tuple[TemplateOption, ...] = (
    TemplateOption(
        id="landing-simple",
        name="Simple landing page",
        project_type="landing",
        tier="beginner",
        stack_ids=["html-css-js", "jamstack"],
        files=_files(
            ("index.html", "Landing page markup with hero, features and call to action"),
            ("styles.css", "Landing page styles"),
            ("script.js", "Small interactions such as smooth scrolling"),
        ),
    ),
    TemplateOption(
        id="landing-pro",
        name="Product landing page",
        project_type="landing",
        tier="intermediate",
        stack_ids=["html-css-js", "react-vite"],
        files=_files(
            ("index.html", "Landing page markup with sections and contact form"),
            ("css/styles.css", "Base styles and layout"),
            ("css/animations.css", "Entrance and hover animations"),
            ("js/main.js", "Navigation and form handling"),
            ("js/animations.js", "Scroll-triggered animations"),
        ),
    ),
    TemplateOption(
        id="portfolio-basic",
        name="Personal portfolio",
        project_type="portfolio",
        tier="beginner",
        stack_ids=["html-css-js", "jamstack"],
        files=_files(
            ("index.html", "Portfolio page with about, projects and contact sections"),
            ("styles.css", "Portfolio styles"),
            ("script.js", "Project filtering"),
            ("projects.json", "Project entries"),
        ),
    ),
    TemplateOption(
        id="blog-standard",
        name="Blog",
        project_type="blog",
        tier="intermediate",
        stack_ids=["html-css-js", "jamstack", "sveltekit"],
        files=_files(
            ("index.html", "Post listing"),
            ("post.html", "Single post view"),
            ("styles.css", "Blog typography and layout"),
            ("main.js", "Loads and renders posts"),
            ("posts.json", "Post metadata"),
        ),
    ),
    TemplateOption(
        id="dashboard-react",
        name="Analytics dashboard",
        project_type="dashboard",
        tier="advanced",
        stack_ids=["react-vite", "mern-stack"],
        files=_files(
            ("package.json", "Project manifest"),
            ("index.html", "Application shell"),
            ("tsconfig.json", "TypeScript configuration"),
            ("src/main.tsx", "Application entry point"),
            ("src/App.tsx", "Dashboard layout"),
            ("src/components/StatCard.tsx", "Metric card component"),
            ("src/styles.css", "Dashboard styles"),
        ),
    ),
    TemplateOption(
        id="ecommerce-store",
        name="Online store",
        project_type="ecommerce",
        tier="advanced",
        stack_ids=["react-vite", "mern-stack"],
        files=_files(
            ("package.json", "Project manifest"),
            ("index.html", "Application shell"),
            ("src/main.jsx", "Application entry point"),
            ("src/App.jsx", "Store layout and routing"),
            ("src/components/ProductList.jsx", "Product grid"),
            ("src/components/Cart.jsx", "Shopping cart"),
            ("src/styles.css", "Store styles"),
        ),
    ),
    TemplateOption(
        id=GENERIC_TEMPLATE_ID,
        name="Web application starter",
        project_type="webapp",
        tier="beginner",
        stack_ids=[stack.id for stack in BUILTIN_STACKS],
        files=_files(
            ("index.html", "Application page"),
            ("styles.css", "Application styles"),
            ("app.js", "Application logic"),
        ),
    ),
)


def preferred_tier(analysis: InstructionAnalysis) -> TemplateTier:
    if analysis.style == "simple" or analysis.complexity == "basic":
        return "beginner"
    if analysis.complexity == "intermediate":
        return "intermediate"
    return "advanced"


class Catalog:
    """Read-only lookup of stacks and templates by id."""

    def __init__(
        self,
        stacks: Iterable[TechnologyStack] = BUILTIN_STACKS,
        templates: Iterable[TemplateOption] = BUILTIN_TEMPLATES,
    ) -> None:
        self._stacks = {stack.id: stack for stack in stacks}
        self._templates = {template.id: template for template in templates}

    def stacks(self) -> list[TechnologyStack]:
        return list(self._stacks.values())

    def templates(self) -> list[TemplateOption]:
        return list(self._templates.values())

    def get_stack(self, stack_id: str) -> TechnologyStack | None:
        return self._stacks.get(stack_id)

    def get_template(self, template_id: str) -> TemplateOption | None:
        return self._templates.get(template_id)

    def pick_template(self, analysis: InstructionAnalysis) -> TemplateOption:
        """Closest tier match for the analyzed project type, else the generic starter."""
        candidates = [
            template
            for template in self._templates.values()
            if template.project_type == analysis.project_type
        ]
        if not candidates:
            generic = self._templates.get(GENERIC_TEMPLATE_ID)
            if generic is not None:
                return generic
            candidates = list(self._templates.values())

        wanted = TIER_ORDER.index(preferred_tier(analysis))
        return min(candidates, key=lambda template: abs(TIER_ORDER.index(template.tier) - wanted))
