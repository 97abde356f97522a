"""Source documents shared by the front-end, converter and CLI tests."""

GITHUB_WORKFLOW = """
name: CI
on: push
env:
  GREETING: hello
jobs:
  build:
    runs-on: ubuntu-latest
    env:
      LEVEL: 2
    steps:
      - uses: actions/checkout@v4
      - name: Say hi
        run: echo ${GREETING}
        timeout-minutes: 5
      - uses: actions/setup-node@v4
        with:
          node-version: 20
  windows:
    name: Windows build
    runs-on: windows-latest
    steps:
      - run: dir
"""

GITLAB_CI = """
stages: [build, test]
variables:
  APP: demo
default:
  image: python:3.12
  before_script:
    - pip install -r requirements.txt
.template:
  script:
    - pytest
unit:
  stage: test
  extends: .template
compile:
  stage: build
  script: make
  inherit:
    default: false
    variables: [OTHER]
"""

CIRCLE_CONFIG = """
version: 2.1
orbs:
  node: circleci/node@5.1.0
  codecov: codecov/codecov@3.2.4
executors:
  node-executor:
    docker:
      - image: cimg/node:20.0
jobs:
  lint:
    docker:
      - image: cimg/base:stable
    steps:
      - run: echo lint
  test:
    executor: node-executor
    resource_class: arm.medium
    steps:
      - checkout
      - node/install-packages:
          pkg-manager: yarn
      - run:
          name: Unit tests
          command: yarn test
      - codecov/upload:
          file: coverage/lcov.info
      - save_cache:
          key: deps
workflows:
  main:
    jobs:
      - test
      - lint:
          requires: [test]
"""

JENKINS_XML = """<?xml version='1.1' encoding='UTF-8'?>
<project>
  <displayName>api build</displayName>
  <builders>
    <hudson.tasks.Shell>
      <command>echo hi</command>
    </hudson.tasks.Shell>
    <hudson.plugins.gradle.Gradle plugin="gradle@2.8">
      <switches></switches>
      <tasks>clean build test</tasks>
      <useWrapper>true</useWrapper>
      <makeExecutable>true</makeExecutable>
    </hudson.plugins.gradle.Gradle>
  </builders>
</project>
"""

JENKINS_TRACE = {
    "name": "demo",
    "spanName": "demo",
    "spanId": "root00",
    "attributesMap": {},
    "children": [
        {
            "spanName": "echo",
            "spanId": "eee555",
            "attributesMap": {"jenkins.pipeline.step.type": "echo"},
            "parameterMap": {"message": "starting"},
        },
        {
            "spanName": "Stage: Build",
            "spanId": "aaa111",
            "attributesMap": {"jenkins.pipeline.step.type": "stage", "jenkins.pipeline.step.name": "Build"},
            "children": [
                {
                    "spanName": "withEnv",
                    "spanId": "bbb222",
                    "attributesMap": {"jenkins.pipeline.step.type": "withEnv"},
                    "parameterMap": {"overrides": ["HOOK=https://hooks.example.com"]},
                    "children": [
                        {
                            "spanName": "Shell Script",
                            "spanId": "ccc333",
                            "attributesMap": {"jenkins.pipeline.step.type": "sh"},
                            "parameterMap": {"script": "make test"},
                        },
                        {
                            "spanName": "jacoco",
                            "spanId": "ddd444",
                            "attributesMap": {"jenkins.pipeline.step.type": "jacoco"},
                            "parameterMap": {"delegate": {"arguments": {"minimumLineCoverage": "80"}}},
                        },
                    ],
                }
            ],
        },
    ],
}


