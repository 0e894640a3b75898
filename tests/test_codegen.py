import pytest

from form_builder.codegen import component_name, export_fields, generate_code


def test_component_names():
    assert component_name("Contact Us") == "ContactUsForm"
    assert component_name("2024 survey!") == "Generated2024SurveyForm"
    assert component_name("") == "GeneratedForm"


def test_export_order_follows_the_document(contact_project):
    assert [field.id for field in export_fields(contact_project)] == [
        "name",
        "email",
        "contact-method",
        "phone",
        "intro",
        "message",
    ]


def test_react_export(contact_project):
    code = generate_code(contact_project, "react")

    assert "export default function ContactUsForm()" in code
    assert '<Label htmlFor="name">Full Name *</Label>' in code
    assert "formData['contact-method']" in code
    assert '<RadioGroupItem value="Phone" id="contact-method-1" />' in code
    assert "rows={4}" in code
    assert "'Send'" in code


def test_vue_export(contact_project):
    code = generate_code(contact_project, "vue")

    assert code.startswith("<template>")
    assert 'type="tel"' in code
    assert "<h2 class=\"text-xl font-semibold\">Anything else?</h2>" in code
    assert "<script setup>" in code


def test_html_export_escapes_text(engine, contact_project):
    project = engine.update_project(contact_project, {"title": "Q&A <beta>"})

    code = generate_code(project, "html")

    assert "<title>Q&amp;A &lt;beta&gt;</title>" in code
    assert '<input type="email" id="email" name="email"' in code
    assert '<label class="option"><input type="radio" name="contact-method" value="Email"> Email</label>' in code


def test_exports_are_deterministic(contact_project):
    for target in ("react", "vue", "html"):
        assert generate_code(contact_project, target) == generate_code(contact_project, target)


def test_unknown_target():
    with pytest.raises(ValueError):
        generate_code(None, "svelte")


def test_react_checkbox_values_are_javascript_strings(engine, contact_project):
    project = engine.update_field(
        contact_project, "contact-method", {"type": "checkbox", "options": ["Don't call", "Email"]}
    )

    code = generate_code(project, "react")

    assert "includes('Don\\'t call')" in code
    assert "toggleOption('contact-method', 'Don\\'t call', checked)" in code
    assert '<Label htmlFor="contact-method-0">Don&#x27;t call</Label>' in code
    assert "&#x27;t call'" not in code
