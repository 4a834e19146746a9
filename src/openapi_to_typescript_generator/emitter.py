"""Rendering of planned files to text."""

from __future__ import annotations

import logging
from typing import Any, Optional

from .config import GeneratorConfig, NamingConvention
from .document import Document
from .errors import EmissionError, ErrorCode
from .model_types import GeneratedFile, LoweredApi, LoweredModel, LoweredProgram
from .naming import file_stem
from .planner import FileKind, FilePlan
from .templating import TemplateEngine
from .ts_ast import TsModule, render_module

logger = logging.getLogger(__name__)

DEFAULT_BASE_PATH = "http://localhost"

_HELPER_TEMPLATES: dict[str, str] = {
    "interface": "models/interface_helpers.ts.j2",
    "union": "models/union_helpers.ts.j2",
}

_PROJECT_TEMPLATES: dict[FileKind, str] = {
    FileKind.PACKAGE_JSON: "project/package.json.j2",
    FileKind.TSCONFIG: "project/tsconfig.json.j2",
    FileKind.TSCONFIG_ESM: "project/tsconfig.esm.json.j2",
    FileKind.README: "project/README.md.j2",
}


def package_name(document: Document, config: GeneratorConfig) -> str:
    """Return the npm package name, including the configured scope."""
    name = config.package.name or file_stem(document.info.title, NamingConvention.KEBAB)
    name = name or "api-client"
    if config.package.scope:
        return f"{config.package.scope}/{name}"
    return name


def base_path(document: Document) -> str:
    """Return the default base URL: the first server, else localhost."""
    if document.servers:
        return document.servers[0].url
    return DEFAULT_BASE_PATH


class Emitter:
    """Turn file plans into ``GeneratedFile`` values.

    AST-backed files (models, APIs, indexes) go through the pretty-printer;
    the runtime and project files are rendered from templates. Both use the
    same engine, so width and indentation settings agree.
    """

    def __init__(
        self,
        document: Document,
        config: GeneratorConfig,
        program: LoweredProgram,
        engine: Optional[TemplateEngine] = None,
    ) -> None:
        self._document = document
        self._config = config
        self._program = program
        self._engine = engine or TemplateEngine(
            max_width=config.emission.max_line_width,
            indent_unit=config.emission.indentation.unit,
            include_docs=config.emission.include_docs,
        )
        self._header: Optional[str] = None

    @property
    def engine(self) -> TemplateEngine:
        return self._engine

    def emit(self, plans: list[FilePlan]) -> list[GeneratedFile]:
        """Render every plan, keeping the plan order."""
        files = [
            GeneratedFile(plan.path, _clean(self._content(plan)), plan.category)
            for plan in plans
        ]
        logger.debug("Emitted %d file(s)", len(files))
        return files

    def header(self) -> str:
        """Return the do-not-edit banner placed at the top of every TypeScript file."""
        if self._header is None:
            info = self._document.info
            self._header = self._engine.render(
                "header.ts.j2",
                title=info.title,
                version=info.version,
                description=info.description,
            )
        return self._header

    def _content(self, plan: FilePlan) -> str:
        if plan.kind is FileKind.MODEL:
            assert isinstance(plan.source, LoweredModel)
            return self._model(plan, plan.source)
        if plan.kind is FileKind.API:
            assert isinstance(plan.source, LoweredApi)
            return self._api(plan, plan.source)
        if plan.kind in (FileKind.MODELS_INDEX, FileKind.APIS_INDEX, FileKind.BARREL):
            return self._index(plan)
        if plan.kind is FileKind.RUNTIME:
            info = self._document.info
            return self._engine.render(
                "runtime.ts.j2",
                title=info.title,
                version=info.version,
                description=info.description,
                base_path=base_path(self._document),
            )
        template = _PROJECT_TEMPLATES.get(plan.kind)
        if template is None:
            raise EmissionError(
                f"No template for file {plan.path}", code=ErrorCode.TEMPLATE_NOT_FOUND
            )
        return self._engine.render(template, **self._project_context())

    def _model(self, plan: FilePlan, model: LoweredModel) -> str:
        module = TsModule(
            path=plan.path,
            declarations=model.declarations,
            imports=plan.imports,
            header=self.header(),
        )
        content = render_module(module, self._engine.emission_context())
        if model.helpers is None:
            return content
        helpers = self._engine.render(_HELPER_TEMPLATES[model.helpers.kind], helpers=model.helpers)
        return f"{content}\n{helpers}"

    def _api(self, plan: FilePlan, api: LoweredApi) -> str:
        module = TsModule(
            path=plan.path,
            declarations=(api.declaration,),
            imports=plan.imports,
            header=self.header(),
        )
        return render_module(module, self._engine.emission_context())

    def _index(self, plan: FilePlan) -> str:
        module = TsModule(path=plan.path, declarations=plan.exports, header=self.header())
        content = render_module(module, self._engine.emission_context())
        if not plan.exports:
            # Keeps the file a module so that `export *` of it still compiles.
            content += "\nexport {};\n"
        return content

    def _project_context(self) -> dict[str, Any]:
        info = self._document.info
        package = self._config.package
        return {
            "package_name": package_name(self._document, self._config),
            "version": package.version or info.version,
            "description": package.description
            or info.description
            or f"TypeScript client for {info.title}",
            "title": info.title,
            "module": package.module,
            "target": package.target,
            "esm": package.generate_esm_config,
            "include_build_scripts": package.include_build_scripts,
            "base_path": base_path(self._document),
            "apis": [api.class_name for api in self._program.apis],
        }


def _clean(content: str) -> str:
    lines = [line.rstrip() for line in content.rstrip("\n").split("\n")]
    return "\n".join(lines) + "\n"
