# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Aspect-oriented programming: pointcuts, advice chains and interception."""

from pyaspect.aop.chain import AdviceChain, AdviceChainBuilder
from pyaspect.aop.decorators import after, after_returning, after_throwing, around, aspect, before, pointcut, tag
from pyaspect.aop.engine import InterceptionEngine
from pyaspect.aop.manifest import AopProperties, load_manifest, resolve_handler
from pyaspect.aop.ordering import HIGHEST_PRECEDENCE, LOWEST_PRECEDENCE, get_order, order
from pyaspect.aop.parser import compile_pointcut
from pyaspect.aop.pointcut import PointcutExpression, matches, matches_pointcut
from pyaspect.aop.registry import AspectRegistry, PointcutRegistry
from pyaspect.aop.signature import Signature, signature_of
from pyaspect.aop.types import AdviceDeclaration, AdviceKind, JoinPoint, ProceedingJoinPoint
from pyaspect.aop.weaver import weave_bean

__all__ = [
    "HIGHEST_PRECEDENCE",
    "LOWEST_PRECEDENCE",
    "AdviceChain",
    "AdviceChainBuilder",
    "AdviceDeclaration",
    "AdviceKind",
    "AopProperties",
    "AspectRegistry",
    "InterceptionEngine",
    "JoinPoint",
    "PointcutExpression",
    "PointcutRegistry",
    "ProceedingJoinPoint",
    "Signature",
    "after",
    "after_returning",
    "after_throwing",
    "around",
    "aspect",
    "before",
    "compile_pointcut",
    "get_order",
    "load_manifest",
    "matches",
    "matches_pointcut",
    "order",
    "pointcut",
    "resolve_handler",
    "signature_of",
    "tag",
    "weave_bean",
]
