from __future__ import annotations

import html
import re
from enum import Enum
from typing import Callable, Mapping

from .models.document import Project
from .models.field import FieldType, FormField
from .rendering import ControlKind, control_for, input_type_for


class CodeTarget(str, Enum):
    react = "react"
    vue = "vue"
    html = "html"


def _text(value: str | None) -> str:
    return html.escape(value or "", quote=True)


def _js_string(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace("'", "\\'").replace("\n", "\\n")
    return "'" + escaped + "'"


def _key(field_id: str) -> str:
    return _js_string(field_id)


def _label(form_field: FormField) -> str:
    return _text(form_field.label) + (" *" if form_field.is_required else "")


def component_name(title: str) -> str:
    words = re.findall(r"[0-9A-Za-z]+", title)
    name = "".join(word[:1].upper() + word[1:] for word in words)
    if not name or name[0].isdigit():
        name = f"Generated{name}"
    return f"{name}Form"


def export_fields(project: Project) -> list[FormField]:
    """Fields in document order; projects with no placements fall back to the flat list."""
    placed = project.placed_field_ids()
    if not placed:
        return list(project.fields)
    return [project.get_field(field_id) for field_id in placed]


def _indent(lines: list[str], depth: int) -> list[str]:
    pad = " " * depth
    return [f"{pad}{line}" if line else line for line in lines]


# React ---------------------------------------------------------------------


def _react_field(form_field: FormField) -> list[str]:
    key = _key(form_field.id)
    field_id = _text(form_field.id)
    required = ["required"] if form_field.is_required else []
    control = control_for(form_field.type)

    if form_field.type == FieldType.heading:
        return [f"<h2 className=\"text-xl font-semibold\">{_text(form_field.label)}</h2>"]
    if form_field.type == FieldType.paragraph:
        return [f"<p className=\"text-gray-600\">{_text(form_field.label)}</p>"]
    if form_field.type == FieldType.divider:
        return ["<hr />"]
    if form_field.type == FieldType.spacer:
        return ['<div className="h-6" />']

    if control == ControlKind.single_line_text or control == ControlKind.date:
        body = [
            "<Input",
            f'  id="{field_id}"',
            f'  type="{input_type_for(form_field.type)}"',
            f'  placeholder="{_text(form_field.placeholder)}"',
            *[f"  {flag}" for flag in required],
            f"  value={{formData[{key}] || ''}}",
            f"  onChange={{(e) => setFormData(prev => ({{ ...prev, [{key}]: e.target.value }}))}}",
            "/>",
        ]
    elif control == ControlKind.multi_line_text:
        body = [
            "<Textarea",
            f'  id="{field_id}"',
            f'  placeholder="{_text(form_field.placeholder)}"',
            f"  rows={{{form_field.rows or 3}}}",
            *[f"  {flag}" for flag in required],
            f"  value={{formData[{key}] || ''}}",
            f"  onChange={{(e) => setFormData(prev => ({{ ...prev, [{key}]: e.target.value }}))}}",
            "/>",
        ]
    elif form_field.type == FieldType.radio:
        body = [
            "<RadioGroup",
            f"  value={{formData[{key}] || ''}}",
            f"  onValueChange={{(value) => setFormData(prev => ({{ ...prev, [{key}]: value }}))}}",
            ">",
        ]
        for index, option in enumerate(form_field.options or ()):
            option_id = _text(f"{form_field.id}-{index}")
            body += [
                '  <div className="flex items-center space-x-2">',
                f'    <RadioGroupItem value="{_text(option)}" id="{option_id}" />',
                f'    <Label htmlFor="{option_id}">{_text(option)}</Label>',
                "  </div>",
            ]
        body.append("</RadioGroup>")
    elif control == ControlKind.single_select:
        options = list(form_field.options or ("1", "2", "3", "4", "5"))
        body = [
            f"<Select onValueChange={{(value) => setFormData(prev => ({{ ...prev, [{key}]: value }}))}}>",
            "  <SelectTrigger>",
            f'    <SelectValue placeholder="{_text(form_field.placeholder or "Select an option")}" />',
            "  </SelectTrigger>",
            "  <SelectContent>",
            *[f'    <SelectItem value="{_text(option)}">{_text(option)}</SelectItem>' for option in options],
            "  </SelectContent>",
            "</Select>",
        ]
    elif form_field.type == FieldType.checkbox:
        body = []
        for index, option in enumerate(form_field.options or ()):
            option_id = _text(f"{form_field.id}-{index}")
            value = _js_string(option)
            body += [
                '<div className="flex items-center space-x-2">',
                "  <Checkbox",
                f'    id="{option_id}"',
                f"    checked={{(formData[{key}] || []).includes({value})}}",
                f"    onCheckedChange={{(checked) => toggleOption({key}, {value}, checked)}}",
                "  />",
                f'  <Label htmlFor="{option_id}">{_text(option)}</Label>',
                "</div>",
            ]
    elif control == ControlKind.boolean_toggle:
        body = [
            "<Switch",
            f'  id="{field_id}"',
            f"  checked={{!!formData[{key}]}}",
            f"  onCheckedChange={{(checked) => setFormData(prev => ({{ ...prev, [{key}]: checked }}))}}",
            "/>",
        ]
    elif control == ControlKind.file:
        accept = ' accept="image/*"' if form_field.type == FieldType.image else ""
        body = [
            f'<Input id="{field_id}" type="file"{accept}{" required" if required else ""}',
            f"  onChange={{(e) => setFormData(prev => ({{ ...prev, [{key}]: e.target.files }}))}}",
            "/>",
        ]
    else:
        return [f"{{/* {form_field.type.value} field: {_text(form_field.label)} */}}"]

    return [
        '<div className="space-y-2">',
        f'  <Label htmlFor="{field_id}">{_label(form_field)}</Label>',
        *_indent(body, 2),
        "</div>",
    ]


def generate_react_code(project: Project) -> str:
    fields = export_fields(project)
    field_blocks: list[str] = []
    for form_field in fields:
        if field_blocks:
            field_blocks.append("")
        field_blocks.extend(_react_field(form_field))

    lines = [
        "import React, { useState } from 'react'",
        "import { Button } from '@/components/ui/button'",
        "import { Input } from '@/components/ui/input'",
        "import { Textarea } from '@/components/ui/textarea'",
        "import { Select, SelectContent, SelectItem, SelectTrigger, SelectValue } from '@/components/ui/select'",
        "import { Checkbox } from '@/components/ui/checkbox'",
        "import { RadioGroup, RadioGroupItem } from '@/components/ui/radio-group'",
        "import { Switch } from '@/components/ui/switch'",
        "import { Label } from '@/components/ui/label'",
        "",
        f"export default function {component_name(project.title)}() {{",
        "  const [formData, setFormData] = useState({})",
        "  const [isSubmitting, setIsSubmitting] = useState(false)",
        "",
        "  const toggleOption = (key, option, checked) => {",
        "    setFormData(prev => {",
        "      const current = prev[key] || []",
        "      const next = checked ? [...current, option] : current.filter(item => item !== option)",
        "      return { ...prev, [key]: next }",
        "    })",
        "  }",
        "",
        "  const handleSubmit = async (e) => {",
        "    e.preventDefault()",
        "    setIsSubmitting(true)",
        "    try {",
        "      console.log('Form submitted:', formData)",
        "    } finally {",
        "      setIsSubmitting(false)",
        "    }",
        "  }",
        "",
        "  return (",
        '    <div className="max-w-2xl mx-auto p-6">',
        '      <div className="mb-6">',
        f'        <h1 className="text-2xl font-bold text-gray-900">{_text(project.title)}</h1>',
    ]
    if project.description:
        lines.append(f'        <p className="text-gray-600 mt-2">{_text(project.description)}</p>')
    lines += [
        "      </div>",
        "",
        '      <form onSubmit={handleSubmit} className="space-y-6">',
        *_indent(field_blocks, 8),
        "",
        '        <Button type="submit" disabled={isSubmitting} className="w-full">',
        f"          {{isSubmitting ? 'Submitting...' : '{_text(project.settings.submit_button_text)}'}}",
        "        </Button>",
        "      </form>",
        "    </div>",
        "  )",
        "}",
        "",
    ]
    return "\n".join(lines)


# Vue -----------------------------------------------------------------------


def _vue_field(form_field: FormField) -> list[str]:
    model = f'formData[{_key(form_field.id)}]'
    field_id = _text(form_field.id)
    required = " required" if form_field.is_required else ""
    control = control_for(form_field.type)

    if form_field.type == FieldType.heading:
        return [f'<h2 class="text-xl font-semibold">{_text(form_field.label)}</h2>']
    if form_field.type == FieldType.paragraph:
        return [f'<p class="text-gray-600">{_text(form_field.label)}</p>']
    if form_field.type == FieldType.divider:
        return ["<hr />"]
    if form_field.type == FieldType.spacer:
        return ['<div class="h-6"></div>']

    input_class = 'class="w-full px-3 py-2 border border-gray-300 rounded-md"'
    if control in (ControlKind.single_line_text, ControlKind.date):
        body = [
            "<input",
            f'  id="{field_id}"',
            f'  v-model="{_text(model)}"',
            f'  type="{input_type_for(form_field.type)}"',
            f'  placeholder="{_text(form_field.placeholder)}"{required}',
            f"  {input_class}",
            "/>",
        ]
    elif control == ControlKind.multi_line_text:
        body = [
            "<textarea",
            f'  id="{field_id}"',
            f'  v-model="{_text(model)}"',
            f'  rows="{form_field.rows or 3}"',
            f'  placeholder="{_text(form_field.placeholder)}"{required}',
            f"  {input_class}",
            "></textarea>",
        ]
    elif form_field.type == FieldType.radio:
        body = []
        for option in form_field.options or ():
            body += [
                '<label class="flex items-center space-x-2">',
                f'  <input type="radio" v-model="{_text(model)}" value="{_text(option)}"{required} />',
                f"  <span>{_text(option)}</span>",
                "</label>",
            ]
    elif control == ControlKind.single_select:
        options = list(form_field.options or ("1", "2", "3", "4", "5"))
        body = [
            f'<select id="{field_id}" v-model="{_text(model)}"{required} {input_class}>',
            f'  <option value="" disabled>{_text(form_field.placeholder or "Select an option")}</option>',
            *[f'  <option value="{_text(option)}">{_text(option)}</option>' for option in options],
            "</select>",
        ]
    elif form_field.type == FieldType.checkbox:
        body = []
        for option in form_field.options or ():
            body += [
                '<label class="flex items-center space-x-2">',
                f'  <input type="checkbox" v-model="{_text(model)}" value="{_text(option)}" />',
                f"  <span>{_text(option)}</span>",
                "</label>",
            ]
    elif control == ControlKind.boolean_toggle:
        body = [f'<input id="{field_id}" type="checkbox" v-model="{_text(model)}" />']
    elif control == ControlKind.file:
        accept = ' accept="image/*"' if form_field.type == FieldType.image else ""
        body = [
            f'<input id="{field_id}" type="file"{accept}{required}',
            f'  @change="(e) => ({_text(model)} = e.target.files)" />',
        ]
    else:
        return [f"<!-- {form_field.type.value} field: {_text(form_field.label)} -->"]

    return [
        '<div class="space-y-2">',
        f'  <label for="{field_id}" class="block text-sm font-medium">{_label(form_field)}</label>',
        *_indent(body, 2),
        "</div>",
    ]


def generate_vue_code(project: Project) -> str:
    fields = export_fields(project)
    field_blocks: list[str] = []
    for form_field in fields:
        if field_blocks:
            field_blocks.append("")
        field_blocks.extend(_vue_field(form_field))

    initial = ", ".join(
        f"{_key(form_field.id)}: []"
        for form_field in fields
        if form_field.type == FieldType.checkbox
    )

    lines = [
        "<template>",
        '  <div class="max-w-2xl mx-auto p-6">',
        '    <div class="mb-6">',
        f'      <h1 class="text-2xl font-bold text-gray-900">{_text(project.title)}</h1>',
    ]
    if project.description:
        lines.append(f'      <p class="text-gray-600 mt-2">{_text(project.description)}</p>')
    lines += [
        "    </div>",
        "",
        '    <form @submit.prevent="handleSubmit" class="space-y-6">',
        *_indent(field_blocks, 6),
        "",
        "      <button",
        '        type="submit"',
        '        :disabled="isSubmitting"',
        '        class="w-full bg-blue-600 text-white py-2 px-4 rounded-md hover:bg-blue-700 disabled:opacity-50"',
        "      >",
        f"        {{{{ isSubmitting ? 'Submitting...' : '{_text(project.settings.submit_button_text)}' }}}}",
        "      </button>",
        "    </form>",
        "  </div>",
        "</template>",
        "",
        "<script setup>",
        "import { ref } from 'vue'",
        "",
        f"const formData = ref({{{initial}}})",
        "const isSubmitting = ref(false)",
        "",
        "const handleSubmit = async () => {",
        "  isSubmitting.value = true",
        "  try {",
        "    console.log('Form submitted:', formData.value)",
        "  } finally {",
        "    isSubmitting.value = false",
        "  }",
        "}",
        "</script>",
        "",
    ]
    return "\n".join(lines)


# Plain HTML ----------------------------------------------------------------


def _html_field(form_field: FormField) -> list[str]:
    field_id = _text(form_field.id)
    required = " required" if form_field.is_required else ""
    control = control_for(form_field.type)

    if form_field.type == FieldType.heading:
        return [f"<h2>{_text(form_field.label)}</h2>"]
    if form_field.type == FieldType.paragraph:
        return [f"<p>{_text(form_field.label)}</p>"]
    if form_field.type == FieldType.divider:
        return ["<hr>"]
    if form_field.type == FieldType.spacer:
        return ['<div class="spacer"></div>']

    if control in (ControlKind.single_line_text, ControlKind.date):
        body = [
            f'<input type="{input_type_for(form_field.type)}" id="{field_id}" name="{field_id}"',
            f'       placeholder="{_text(form_field.placeholder)}"{required} class="form-control">',
        ]
    elif control == ControlKind.multi_line_text:
        body = [
            f'<textarea id="{field_id}" name="{field_id}" rows="{form_field.rows or 3}"',
            f'          placeholder="{_text(form_field.placeholder)}"{required} class="form-control"></textarea>',
        ]
    elif form_field.type in (FieldType.radio, FieldType.checkbox):
        input_type = "radio" if form_field.type == FieldType.radio else "checkbox"
        body = [
            f'<label class="option"><input type="{input_type}" name="{field_id}" value="{_text(option)}"'
            f'{required if input_type == "radio" else ""}> {_text(option)}</label>'
            for option in form_field.options or ()
        ]
    elif control == ControlKind.single_select:
        options = list(form_field.options or ("1", "2", "3", "4", "5"))
        body = [
            f'<select id="{field_id}" name="{field_id}"{required} class="form-control">',
            f'  <option value="" disabled selected>{_text(form_field.placeholder or "Select an option")}</option>',
            *[f'  <option value="{_text(option)}">{_text(option)}</option>' for option in options],
            "</select>",
        ]
    elif control == ControlKind.boolean_toggle:
        body = [f'<input type="checkbox" id="{field_id}" name="{field_id}" value="true">']
    elif control == ControlKind.file:
        accept = ' accept="image/*"' if form_field.type == FieldType.image else ""
        body = [f'<input type="file" id="{field_id}" name="{field_id}"{accept}{required} class="form-control">']
    else:
        return [f"<!-- {form_field.type.value} field: {_text(form_field.label)} -->"]

    return [
        '<div class="form-group">',
        f'  <label for="{field_id}">{_label(form_field)}</label>',
        *_indent(body, 2),
        "</div>",
    ]


def generate_html_code(project: Project) -> str:
    fields = export_fields(project)
    field_blocks: list[str] = []
    for form_field in fields:
        if field_blocks:
            field_blocks.append("")
        field_blocks.extend(_html_field(form_field))

    lines = [
        "<!DOCTYPE html>",
        f'<html lang="{_text(project.settings.language)}">',
        "<head>",
        '  <meta charset="UTF-8">',
        '  <meta name="viewport" content="width=device-width, initial-scale=1.0">',
        f"  <title>{_text(project.title)}</title>",
        "  <style>",
        "    .container { max-width: 600px; margin: 0 auto; padding: 20px; }",
        "    .form-group { margin-bottom: 20px; }",
        "    label { display: block; margin-bottom: 5px; font-weight: bold; }",
        "    .option { font-weight: normal; }",
        "    .form-control { width: 100%; padding: 10px; border: 1px solid #ddd; border-radius: 4px; font-size: 16px; }",
        "    .spacer { height: 24px; }",
        "    .btn { background: #007bff; color: white; padding: 12px 24px; border: none; border-radius: 4px; cursor: pointer; font-size: 16px; }",
        "    .btn:hover { background: #0056b3; }",
        "  </style>",
        "</head>",
        "<body>",
        '  <div class="container">',
        f"    <h1>{_text(project.title)}</h1>",
    ]
    if project.description:
        lines.append(f"    <p>{_text(project.description)}</p>")
    lines += [
        "",
        '    <form id="generatedForm">',
        *_indent(field_blocks, 6),
        "",
        f'      <button type="submit" class="btn">{_text(project.settings.submit_button_text)}</button>',
        "    </form>",
        "  </div>",
        "",
        "  <script>",
        "    document.getElementById('generatedForm').addEventListener('submit', function (e) {",
        "      e.preventDefault();",
        "      const data = Object.fromEntries(new FormData(this).entries());",
        "      console.log('Form submitted:', data);",
        "    });",
        "  </script>",
        "</body>",
        "</html>",
        "",
    ]
    return "\n".join(lines)


GENERATORS: Mapping[CodeTarget, Callable[[Project], str]] = {
    CodeTarget.react: generate_react_code,
    CodeTarget.vue: generate_vue_code,
    CodeTarget.html: generate_html_code,
}


def generate_code(project: Project, target: CodeTarget | str) -> str:
    """Emit source for ``target``; the same project always yields identical text."""
    return GENERATORS[CodeTarget(target)](project)


__all__ = [
    "CodeTarget",
    "GENERATORS",
    "component_name",
    "export_fields",
    "generate_code",
    "generate_html_code",
    "generate_react_code",
    "generate_vue_code",
]
