"""Default pipeline definition written by ``secpipe init``."""

from __future__ import annotations

from pathlib import Path

DEFAULT_CONFIG_NAME = ".secpipe.yml"

DEFAULT_PIPELINE_YAML = """\
# secpipe pipeline definition
#
# Stages run in order. A step with failure_policy: fail-fast (the default)
# aborts the pipeline when it fails; continue-on-error steps record the
# failure and let the pipeline continue. Artifacts listed under a stage are
# archived after its last step and linked from the aggregate report.
#
# Credentials are looked up by id. With the default env store, the id
# "sonar-token" is read from SECPIPE_CRED_SONAR_TOKEN, and the username and
# password of "docker-hub" from SECPIPE_CRED_DOCKER_HUB_USERNAME and
# SECPIPE_CRED_DOCKER_HUB_PASSWORD.

name: {name}
title: Security Pipeline Report
# dashboard_url: https://sonar.example.com/dashboard?id={name}

environment:
  IMAGE: ${{IMAGE:-{name}}}
  IMAGE_TAG: ${{IMAGE_TAG:-latest}}
  TARGET_URL: ${{TARGET_URL:-http://localhost:8080}}

output:
  dir: .secpipe
  report: security-report
  formats: [html, json, summary]

credentials:
  store: env

stages:
  - name: secret-scan
    steps:
      - name: gitleaks
        run: gitleaks detect --source . --report-format json --report-path gitleaks-report.json
        failure_policy: continue-on-error
    artifacts:
      - path: gitleaks-report.json
        label: Secret Scan

  - name: build
    steps:
      - name: build
        run: make build

  - name: dependency-audit
    steps:
      - name: dependency-check
        run: dependency-check --scan . --format HTML --out dependency-check-report.html
        failure_policy: continue-on-error
        timeout: 1800
    artifacts:
      - path: dependency-check-report.html
        label: Dependency Audit

  - name: static-analysis
    steps:
      - name: sonar-scanner
        run: sonar-scanner -Dsonar.projectKey={name} -Dsonar.token=${{SONAR_TOKEN}}
        credentials:
          - id: sonar-token
            variable: SONAR_TOKEN
        failure_policy: continue-on-error

  - name: image-build
    steps:
      - name: docker-build
        run: docker build -t ${{IMAGE}}:${{IMAGE_TAG}} .

  - name: image-scan
    steps:
      - name: trivy
        run: trivy image --format template --template "@contrib/html.tpl" --output trivy-report.html ${{IMAGE}}:${{IMAGE_TAG}}
        failure_policy: continue-on-error
    artifacts:
      - path: trivy-report.html
        label: Image Scan

  - name: dynamic-scan
    steps:
      - name: zap-baseline
        run: zap-baseline.py -t ${{TARGET_URL}} -r zap-report.html
        failure_policy: continue-on-error
        success_codes: [0, 2]
    artifacts:
      - path: zap-report.html
        label: Dynamic Scan

  - name: publish
    steps:
      - name: docker-login
        run: echo "$DOCKER_PASSWORD" | docker login -u "$DOCKER_USERNAME" --password-stdin
        shell: true
        credentials:
          - id: docker-hub
            username_variable: DOCKER_USERNAME
            password_variable: DOCKER_PASSWORD
      - name: docker-push
        run: docker push ${{IMAGE}}:${{IMAGE_TAG}}

post:
  always:
    - name: cleanup
      run: docker image prune -f
      failure_policy: continue-on-error
"""


def render_default_pipeline(name: str) -> str:
    """Default pipeline YAML for a project called ``name``."""
    return DEFAULT_PIPELINE_YAML.format(name=name or "pipeline")


def write_default_pipeline(project_root: Path, name: str = "") -> Path:
    """Write the default pipeline to ``<project_root>/.secpipe.yml``."""
    config_path = project_root / DEFAULT_CONFIG_NAME
    config_path.write_text(
        render_default_pipeline(name or project_root.resolve().name),
        encoding="utf-8",
    )
    return config_path
