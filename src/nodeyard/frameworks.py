"""Framework descriptor table.

Every per-framework decision (entry file, primary language, managed runtime,
starter template) is a single lookup in ``FRAMEWORKS``. Callers never switch on
framework values themselves.

Templates are ``string.Template`` strings with three placeholders:
  $name   node display name
  $ident  name with whitespace removed (type / struct names)
  $slug   lower-case, dash-separated name (resource names)
A literal dollar sign is written ``$$``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum
from pathlib import PurePosixPath
from string import Template


class CodeLanguage(str, Enum):
    SWIFT = "swift"
    PYTHON = "python"
    JAVASCRIPT = "javascript"
    TYPESCRIPT = "typescript"
    HTML = "html"
    CSS = "css"
    BASH = "bash"
    DOCKERFILE = "dockerfile"
    YAML = "yaml"
    TERRAFORM = "terraform"
    RUST = "rust"
    GO = "go"
    JAVA = "java"
    MARKDOWN = "markdown"
    JSON = "json"
    TEXT = "text"

    @property
    def file_extension(self) -> str:
        return _EXTENSIONS[self]

    @classmethod
    def from_path(cls, path: str) -> CodeLanguage:
        """Guess the language of *path* from its suffix (or exact file name)."""
        p = PurePosixPath(path)
        if p.name == "Dockerfile":
            return cls.DOCKERFILE
        return _SUFFIX_TO_LANGUAGE.get(p.suffix.lower(), cls.TEXT)


_EXTENSIONS: dict[CodeLanguage, str] = {
    CodeLanguage.SWIFT: "swift",
    CodeLanguage.PYTHON: "py",
    CodeLanguage.JAVASCRIPT: "js",
    CodeLanguage.TYPESCRIPT: "ts",
    CodeLanguage.HTML: "html",
    CodeLanguage.CSS: "css",
    CodeLanguage.BASH: "sh",
    CodeLanguage.DOCKERFILE: "dockerfile",
    CodeLanguage.YAML: "yaml",
    CodeLanguage.TERRAFORM: "tf",
    CodeLanguage.RUST: "rs",
    CodeLanguage.GO: "go",
    CodeLanguage.JAVA: "java",
    CodeLanguage.MARKDOWN: "md",
    CodeLanguage.JSON: "json",
    CodeLanguage.TEXT: "txt",
}

_SUFFIX_TO_LANGUAGE: dict[str, CodeLanguage] = {
    f".{ext}": lang for lang, ext in _EXTENSIONS.items()
}
_SUFFIX_TO_LANGUAGE.update(
    {
        ".jsx": CodeLanguage.JAVASCRIPT,
        ".mjs": CodeLanguage.JAVASCRIPT,
        ".tsx": CodeLanguage.TYPESCRIPT,
        ".vue": CodeLanguage.JAVASCRIPT,
        ".htm": CodeLanguage.HTML,
        ".yml": CodeLanguage.YAML,
        ".markdown": CodeLanguage.MARKDOWN,
    }
)


class EnvironmentKind(str, Enum):
    """Managed runtime a framework needs before its code can run."""

    PYTHON = "python"
    NODE = "node"


class Framework(str, Enum):
    NODEJS = "nodejs"
    ANGULAR = "angular"
    REACT = "react"
    VUE = "vue"
    NEXTJS = "nextjs"
    EXPRESS = "express"
    NESTJS = "nestjs"
    DJANGO = "django"
    FLASK = "flask"
    FASTAPI = "fastapi"
    PUREPY = "purepy"
    RUST = "rust"
    SWIFT = "swift"
    SWIFTUI = "swiftui"
    GO = "go"
    JAVA = "java"
    SPRING = "spring"
    DOCKER = "docker"
    KUBERNETES = "kubernetes"
    TERRAFORM = "terraform"


@dataclass(frozen=True)
class FrameworkSpec:
    label: str
    language: CodeLanguage
    entry_path: str
    environment: EnvironmentKind | None
    template: str

    @property
    def needs_environment(self) -> bool:
        return self.environment is not None


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

_NODEJS = """\
// $name
// Node.js application entry point

console.log('Hello, $name!');

// Add your code here
"""

_ANGULAR = """\
import { Component } from '@angular/core';

@Component({
  selector: 'app-root',
  template: '<h1>Hello, $name!</h1>'
})
export class AppComponent {
  title = '$name';
}
"""

_REACT = """\
import React from 'react';

function App() {
  return (
    <div>
      <h1>Hello, $name!</h1>
    </div>
  );
}

export default App;
"""

_VUE = """\
<template>
  <div>
    <h1>Hello, $name!</h1>
  </div>
</template>

<script>
export default {
  name: 'App'
}
</script>
"""

_NEXTJS = """\
export default function Home() {
  return (
    <div>
      <h1>Hello, $name!</h1>
    </div>
  );
}
"""

_EXPRESS = """\
const express = require('express');
const app = express();
const port = 3000;

app.get('/', (req, res) => {
  res.send('Hello, $name!');
});

app.listen(port, () => {
  console.log(`$name listening at http://localhost:$${port}`);
});
"""

_NESTJS = """\
import { Controller, Get } from '@nestjs/common';

@Controller()
export class AppController {
  @Get()
  getHello(): string {
    return 'Hello, $name!';
  }
}
"""

_DJANGO = """\
# $name Django Project

from django.http import HttpResponse


def index(request):
    return HttpResponse("Hello, $name!")
"""

_FLASK = """\
from flask import Flask

app = Flask(__name__)


@app.route('/')
def hello():
    return 'Hello, $name!'


if __name__ == '__main__':
    app.run(debug=True)
"""

_FASTAPI = """\
from fastapi import FastAPI

app = FastAPI(title="$name")


@app.get("/")
def read_root():
    return {"message": "Hello, $name!"}
"""

_PUREPY = """\
# $name
# Pure Python application


def main():
    print("Hello, $name!")


if __name__ == "__main__":
    main()
"""

_RUST = """\
fn main() {
    println!("Hello, $name!");
}
"""

_SWIFT = """\
import Foundation

print("Hello, $name!")
"""

_SWIFTUI = """\
import SwiftUI

@main
struct ${ident}App: App {
    var body: some Scene {
        WindowGroup {
            ContentView()
        }
    }
}

struct ContentView: View {
    var body: some View {
        Text("Hello, $name!")
            .font(.largeTitle)
            .padding()
    }
}
"""

_GO = """\
package main

import "fmt"

func main() {
    fmt.Println("Hello, $name!")
}
"""

_JAVA = """\
public class Main {
    public static void main(String[] args) {
        System.out.println("Hello, $name!");
    }
}
"""

_SPRING = """\
package com.example;

import org.springframework.boot.SpringApplication;
import org.springframework.boot.autoconfigure.SpringBootApplication;

@SpringBootApplication
public class Application {
    public static void main(String[] args) {
        SpringApplication.run(Application.class, args);
    }
}
"""

_DOCKER = """\
FROM node:20-alpine
WORKDIR /app
COPY package*.json ./
RUN npm install
COPY . .
EXPOSE 3000
CMD ["npm", "start"]
"""

_KUBERNETES = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: $slug
spec:
  replicas: 1
  selector:
    matchLabels:
      app: $slug
  template:
    metadata:
      labels:
        app: $slug
    spec:
      containers:
      - name: app
        image: $slug:latest
        ports:
        - containerPort: 3000
"""

_TERRAFORM = """\
terraform {
  required_version = ">= 1.0"
}

resource "aws_instance" "example" {
  ami           = "ami-0c55b159cbfafe1f0"
  instance_type = "t2.micro"

  tags = {
    Name = "$name"
  }
}
"""

_PY = EnvironmentKind.PYTHON
_JS = EnvironmentKind.NODE

FRAMEWORKS: dict[Framework, FrameworkSpec] = {
    Framework.NODEJS: FrameworkSpec("Node.js", CodeLanguage.JAVASCRIPT, "src/index.js", _JS, _NODEJS),
    Framework.ANGULAR: FrameworkSpec("Angular", CodeLanguage.TYPESCRIPT, "src/main.ts", _JS, _ANGULAR),
    Framework.REACT: FrameworkSpec("React", CodeLanguage.JAVASCRIPT, "src/index.js", _JS, _REACT),
    Framework.VUE: FrameworkSpec("Vue", CodeLanguage.JAVASCRIPT, "src/main.js", _JS, _VUE),
    Framework.NEXTJS: FrameworkSpec("Next.js", CodeLanguage.JAVASCRIPT, "pages/index.js", _JS, _NEXTJS),
    Framework.EXPRESS: FrameworkSpec("Express", CodeLanguage.JAVASCRIPT, "src/index.js", _JS, _EXPRESS),
    Framework.NESTJS: FrameworkSpec("NestJS", CodeLanguage.TYPESCRIPT, "src/main.ts", _JS, _NESTJS),
    Framework.DJANGO: FrameworkSpec("Django", CodeLanguage.PYTHON, "manage.py", _PY, _DJANGO),
    Framework.FLASK: FrameworkSpec("Flask", CodeLanguage.PYTHON, "app.py", _PY, _FLASK),
    Framework.FASTAPI: FrameworkSpec("FastAPI", CodeLanguage.PYTHON, "main.py", _PY, _FASTAPI),
    Framework.PUREPY: FrameworkSpec("PurePy", CodeLanguage.PYTHON, "src/main.py", _PY, _PUREPY),
    Framework.RUST: FrameworkSpec("Rust", CodeLanguage.RUST, "src/main.rs", None, _RUST),
    Framework.SWIFT: FrameworkSpec("Swift", CodeLanguage.SWIFT, "Sources/main.swift", None, _SWIFT),
    Framework.SWIFTUI: FrameworkSpec("SwiftUI", CodeLanguage.SWIFT, "Sources/App.swift", None, _SWIFTUI),
    Framework.GO: FrameworkSpec("Go", CodeLanguage.GO, "main.go", None, _GO),
    Framework.JAVA: FrameworkSpec("Java", CodeLanguage.JAVA, "src/main/java/Main.java", None, _JAVA),
    Framework.SPRING: FrameworkSpec(
        "Spring", CodeLanguage.JAVA, "src/main/java/Application.java", None, _SPRING
    ),
    Framework.DOCKER: FrameworkSpec("Docker", CodeLanguage.DOCKERFILE, "Dockerfile", None, _DOCKER),
    Framework.KUBERNETES: FrameworkSpec(
        "Kubernetes", CodeLanguage.YAML, "deployment.yaml", None, _KUBERNETES
    ),
    Framework.TERRAFORM: FrameworkSpec("Terraform", CodeLanguage.TERRAFORM, "main.tf", None, _TERRAFORM),
}


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------


def spec_for(framework: Framework) -> FrameworkSpec:
    return FRAMEWORKS[framework]


def needs_environment(framework: Framework) -> bool:
    return FRAMEWORKS[framework].needs_environment


def render_template(framework: Framework, node_name: str) -> str:
    """Return the starter content of *framework*'s entry file for *node_name*."""
    ident = re.sub(r"\s+", "", node_name) or "App"
    slug = re.sub(r"[^a-z0-9]+", "-", node_name.lower()).strip("-") or "app"
    return Template(FRAMEWORKS[framework].template).substitute(
        name=node_name, ident=ident, slug=slug
    )


def parse_framework(value: str) -> Framework:
    """Resolve *value* (enum value or display label, any case) to a Framework.

    Raises:
        ValueError: If *value* names no known framework.
    """
    wanted = value.strip().lower()
    for fw, spec in FRAMEWORKS.items():
        if wanted in (fw.value, spec.label.lower()):
            return fw
    choices = ", ".join(fw.value for fw in Framework)
    raise ValueError(f"Unknown framework '{value}'. Choose one of: {choices}")
